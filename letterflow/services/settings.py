"""System settings singleton with an explicit load/save lifecycle."""
from pydantic import TypeAdapter

from letterflow.models.audit import LogAction
from letterflow.models.domain import PublicUser, SystemSettings
from letterflow.services.activity_log import ActivityLog
from letterflow.services.store import JsonCollection, KeyValueStore

SETTINGS_KEY = "settings"


class SettingsRepository:
    """Reads and writes the single SystemSettings record."""

    def __init__(self, store: KeyValueStore, activity_log: ActivityLog):
        self.activity_log = activity_log
        self._settings = JsonCollection(store, SETTINGS_KEY, TypeAdapter(SystemSettings), SystemSettings)

    def is_saved(self) -> bool:
        return self._settings.exists()

    def load(self) -> SystemSettings:
        """Stored settings, or the defaults if none were ever saved."""
        return self._settings.load()

    def save(self, settings: SystemSettings, actor: PublicUser = None) -> SystemSettings:
        self._settings.save(settings)
        if actor is not None:
            self.activity_log.append(
                actor.id, actor.full_name, LogAction.UPDATE_SETTINGS,
                f"Updated system settings: {settings.site_name}"
            )
        return settings
