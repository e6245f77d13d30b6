from dataclasses import dataclass
from typing import Optional
from .models import RuleStatus, ScanReport


@dataclass
class AppState:
    last_report: Optional[ScanReport] = None
    rules: Optional[RuleStatus] = None
