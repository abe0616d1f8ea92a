from .analysis_report import AnalysisReport  # noqa: F401
from .api_spec import ApiSpec  # noqa: F401
from .breaking_change import BreakingChange, ChangeStatus, ChangeType  # noqa: F401
