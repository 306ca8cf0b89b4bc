from typing import Optional

from models.common import CamelModel

DEFAULT_SETTINGS = {
    "theme": "system",
    "notifications": True,
    "auto_save": True,
}


class SettingsUpdate(CamelModel):
    theme: Optional[str] = None
    notifications: Optional[bool] = None
    auto_save: Optional[bool] = None
