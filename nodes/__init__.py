"""Node classes used by the IHC Node Server."""

from .IHCSwitch import IHCSwitch as IHCSwitch
from .IHCDimmer import IHCDimmer as IHCDimmer
from .IHCContact import IHCContact as IHCContact
from .Controller import Controller as Controller
