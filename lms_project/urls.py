from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path, re_path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
)

from courses.views import (
    complete_lesson_view,
    get_course_progress_view,
    get_notifications_view,
    get_program_certificate_view,
    get_program_enrollment_view,
    get_unread_count_view,
    mark_all_notifications_read_view,
    mark_notification_read_view,
    start_assessment_view,
    start_lesson_view,
    verify_certificate_view,
)

urlpatterns = [
    path('admin/', admin.site.urls),

    # Auth
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Progress
    re_path(r'^api/lessons/(?P<lesson_id>\d+)/start/?$', start_lesson_view, name='start_lesson'),
    re_path(r'^api/lessons/(?P<lesson_id>\d+)/complete/?$', complete_lesson_view, name='complete_lesson'),
    re_path(r'^api/assessments/(?P<assessment_id>\d+)/start/?$', start_assessment_view, name='start_assessment'),
    re_path(r'^api/course-progress/(?P<course_id>\d+)/?$', get_course_progress_view, name='course_progress'),
    re_path(r'^api/program-enrollment/(?P<program_id>\d+)/?$', get_program_enrollment_view, name='program_enrollment'),

    # Certificates
    re_path(r'^api/certificates/program/(?P<program_id>\d+)/?$', get_program_certificate_view, name='program_certificate'),
    re_path(r'^api/verify-certificate/(?P<code>[^/]+)/?$', verify_certificate_view, name='verify_certificate'),

    # Notification endpoints
    re_path(r'^api/notifications/?$', get_notifications_view, name='get_notifications'),
    re_path(r'^api/notifications/unread-count/?$', get_unread_count_view, name='get_unread_count'),
    re_path(r'^api/notifications/(?P<notification_id>\d+)/read/?$', mark_notification_read_view, name='mark_notification_read'),
    re_path(r'^api/notifications/read-all/?$', mark_all_notifications_read_view, name='mark_all_notifications_read'),

    # Grading
    path('api/', include('grading.urls')),
]
if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
