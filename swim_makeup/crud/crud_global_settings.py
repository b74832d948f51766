# swim_makeup/crud/crud_global_settings.py
from sqlalchemy.orm import Session

from swim_makeup.core.config import settings
from swim_makeup.models.global_settings import GlobalSettings
from swim_makeup.schemas.global_settings import GlobalSettingsUpdate

SINGLETON_ID = 1


class CRUDGlobalSettings:
    """Read/write access to the singleton settings row."""

    def get_or_create(self, db: Session) -> GlobalSettings:
        """
        Get the settings row, creating it from environment defaults on first use.
        """
        row = db.query(GlobalSettings).filter(GlobalSettings.id == SINGLETON_ID).first()
        if not row:
            row = GlobalSettings(
                id=SINGLETON_ID,
                makeup_window_days=settings.DEFAULT_MAKEUP_WINDOW_DAYS,
                cutoff_time=settings.DEFAULT_CUTOFF_TIME,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
        return row

    def update(self, db: Session, *, obj_in: GlobalSettingsUpdate) -> GlobalSettings:
        row = self.get_or_create(db)
        for field, value in obj_in.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(row, field, value)
        db.commit()
        db.refresh(row)
        return row


# Singleton instance
global_settings_crud = CRUDGlobalSettings()
