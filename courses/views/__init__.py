from .progress_views import *
from .certificate_views import *
from .notification_views import *
