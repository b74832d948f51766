# swim_makeup/crud/__init__.py

from .crud_class_slot import class_slot
from .crud_makeup_request import makeup_request
from .crud_absence_notice import absence_notice
from .crud_global_settings import global_settings_crud
from .crud_holiday import holiday
