from backend.app.domains.regeneration.schemas import (
    NewContextRegeneration,
    NewModelRegeneration,
    RegenerationRequest,
    SameSettingsRegeneration,
)
from backend.app.domains.regeneration.service import (
    RegenerationService,
    last_used_settings,
    resolve_strategy,
)

__all__ = [
    "NewContextRegeneration",
    "NewModelRegeneration",
    "RegenerationRequest",
    "RegenerationService",
    "SameSettingsRegeneration",
    "last_used_settings",
    "resolve_strategy",
]
