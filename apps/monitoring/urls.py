from django.urls import path
from rest_framework.authtoken.views import obtain_auth_token

from .views import (
    health_check,
    StudentListView,
    StudentDetailView,
    SampleStudentsView,
    StudentSummaryView,
    DeviceListView,
    DeviceDetailView,
    DevicePingView,
    DeviceStatsView,
    StartMonitoringView,
    StopMonitoringView,
    TickView,
    SnapshotView,
    ActiveAlertListView,
    AcknowledgeAlertView,
    RaiseAlertView,
    EventListView,
    CampusSettingsView,
    SensorReadingView,
)

urlpatterns = [
    # Health Check
    path('health/', health_check, name='health-check'),

    # Auth
    path('auth/login/', obtain_auth_token, name='user-login'),

    # Roster
    path('students/', StudentListView.as_view(), name='student-list'),
    path('students/sample/', SampleStudentsView.as_view(), name='student-sample'),
    path('students/summary/', StudentSummaryView.as_view(), name='student-summary'),
    path('students/<str:person_id>/', StudentDetailView.as_view(), name='student-detail'),

    # Devices
    path('devices/', DeviceListView.as_view(), name='device-list'),
    path('devices/stats/', DeviceStatsView.as_view(), name='device-stats'),
    path('devices/<str:device_id>/', DeviceDetailView.as_view(), name='device-detail'),
    path('devices/<str:device_id>/ping/', DevicePingView.as_view(), name='device-ping'),

    # Calamity mode
    path('monitoring/start/', StartMonitoringView.as_view(), name='monitoring-start'),
    path('monitoring/stop/', StopMonitoringView.as_view(), name='monitoring-stop'),
    path('monitoring/tick/', TickView.as_view(), name='monitoring-tick'),
    path('monitoring/snapshot/', SnapshotView.as_view(), name='monitoring-snapshot'),

    # SOS Alerts
    path('alerts/active/', ActiveAlertListView.as_view(), name='alerts-active'),
    path('alerts/active/<int:index>/acknowledge/', AcknowledgeAlertView.as_view(), name='alerts-acknowledge'),
    path('alerts/raise/', RaiseAlertView.as_view(), name='alerts-raise'),

    # Events & settings
    path('events/', EventListView.as_view(), name='event-list'),
    path('settings/', CampusSettingsView.as_view(), name='campus-settings'),

    # Live sensor feed
    path('sensor/readings/', SensorReadingView.as_view(), name='sensor-readings'),
]
