# swim_makeup/models/__init__.py
# Import all models to ensure SQLAlchemy can resolve relationships
# Order matters for dependencies - import base models first

from swim_makeup.db.base_class import Base
from swim_makeup.models.class_slot import ClassSlot
from swim_makeup.models.absence_notice import AbsenceNotice
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.models.global_settings import GlobalSettings
from swim_makeup.models.holiday import Holiday
