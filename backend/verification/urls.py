from django.urls import path
from . import views

urlpatterns = [
    # Devices
    path('devices/', views.DeviceListCreateView.as_view(), name='verification-devices'),
    path('devices/<int:device_id>/qr/', views.DeviceQRView.as_view(), name='verification-device-qr'),
    # Scan & compare
    path('scan/', views.ScanView.as_view(), name='verification-scan'),
    path('sas/', views.ShortAuthStringView.as_view(), name='verification-sas'),
    # Outcomes
    path('records/', views.KeyVerificationListCreateView.as_view(), name='verification-records'),
    path('records/status/', views.VerificationStatusView.as_view(), name='verification-status'),
    path('features/', views.VerificationFeaturesView.as_view(), name='verification-features'),
]
