import logging
from rest_framework import generics, status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.throttling import UserRateThrottle
from django.shortcuts import get_object_or_404

from config.pagination import DefaultCursorPagination
from .conf import get_config
from .models import Device, KeyVerification
from .qr_payload import encode, decode, is_failure, IncompletePayload, NotAPayload
from .sas import derive_short_auth_string, DigestUnavailable
from .serializers import (
    DeviceSerializer, ScanSerializer, SASRequestSerializer, KeyVerificationSerializer,
)

logger = logging.getLogger(__name__)
telemetry = logging.getLogger('verification.telemetry')


class ScanThrottle(UserRateThrottle):
    """Limit scan submissions; a camera loop must not hammer the API"""
    rate = '600/hour'


class VerificationCursorPagination(DefaultCursorPagination):
    ordering = '-verified_at'


def _unavailable_response():
    return Response({
        'error': 'Verification unavailable.',
        'code': 'verification_unavailable',
        'retryable': False,
    }, status=status.HTTP_503_SERVICE_UNAVAILABLE)


def _emit(config, event, **fields):
    if config.telemetry_enabled:
        telemetry.info(event, extra={'verification': fields})


# ────────────────────────── Devices ──────────────────────────

class DeviceListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/verification/devices/   list the caller's devices
    POST /api/verification/devices/   register a device identity
    """
    serializer_class = DeviceSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Device.objects.filter(user=self.request.user)


class DeviceQRView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, device_id):
        """
        Transport string for one of the caller's own devices.
        The client renders it as a QR code; rendering is not done here.
        """
        device = get_object_or_404(Device, id=device_id, user=request.user)
        qr_data = encode(
            device.fingerprint,
            request.user.id,
            device.label,
            device.public_key_armored,
        )
        logger.debug(f'QR payload built for device {device.id} of user {request.user.id}')
        return Response({'qr_data': qr_data, 'fingerprint': device.fingerprint})


# ────────────────────────── Scan & SAS ──────────────────────────

class ScanView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScanThrottle]

    def post(self, request):
        """
        Decode a scanned transport string and compute the SAS
        between the caller's device and the scanned one.
        Body: { "qr_data": "...", "device_id": 1 }
        """
        serializer = ScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        config = get_config()

        device = get_object_or_404(
            Device, id=serializer.validated_data['device_id'], user=request.user
        )

        result = decode(serializer.validated_data['qr_data'])
        if isinstance(result, NotAPayload):
            # Ordinary outcome of scanning any other code, not an error
            _emit(config, 'scan_rejected', code=result.code)
            return Response({
                'found': False,
                'code': result.code,
                'message': result.message,
                'retryable': result.retryable,
            })

        if is_failure(result):
            _emit(config, 'scan_rejected', code=result.code)
            body = {'error': result.message, 'code': result.code, 'retryable': result.retryable}
            if isinstance(result, IncompletePayload):
                body['missing_fields'] = list(result.missing_fields)
            http_status = (status.HTTP_400_BAD_REQUEST if result.code == 'malformed_payload'
                           else status.HTTP_422_UNPROCESSABLE_ENTITY)
            return Response(body, status=http_status)

        if result.fingerprint == device.fingerprint:
            logger.warning(f'User {request.user.id} scanned their own device {device.id}')
            _emit(config, 'scan_rejected', code='own_device')
            return Response({
                'error': 'Cannot verify your own device.',
                'code': 'own_device',
                'retryable': False,
            }, status=status.HTTP_400_BAD_REQUEST)

        try:
            sas = derive_short_auth_string(device.fingerprint, result.fingerprint)
        except DigestUnavailable:
            logger.error(f'SAS derivation failed for user {request.user.id}')
            return _unavailable_response()

        _emit(config, 'scan_accepted')
        return Response({
            'found': True,
            'payload': result.to_wire(),
            'sas': sas,
            'age_seconds': result.age_seconds(),
            'stale': result.is_stale(config.payload_max_age_seconds),
        })


class ShortAuthStringView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        """Body: { "fingerprint_a": "...", "fingerprint_b": "..." }"""
        serializer = SASRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            sas = derive_short_auth_string(
                serializer.validated_data['fingerprint_a'],
                serializer.validated_data['fingerprint_b'],
            )
        except DigestUnavailable:
            logger.error(f'SAS derivation failed for user {request.user.id}')
            return _unavailable_response()
        return Response({'sas': sas})


# ────────────────────────── Verification records ──────────────────────────

class KeyVerificationListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/verification/records/   verifications made by the caller
    POST /api/verification/records/   store a completed verification
    """
    serializer_class = KeyVerificationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = VerificationCursorPagination

    def get_queryset(self):
        return KeyVerification.objects.filter(
            verifier=self.request.user
        ).select_related('verifier_device')

    def perform_create(self, serializer):
        record = serializer.save()
        logger.info(f'User {self.request.user.id} verified {record.target_fpr} via {record.method}')
        _emit(get_config(), 'verification_recorded', method=record.method)


class VerificationStatusView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        """GET /api/verification/records/status/?fpr=<fingerprint>"""
        fpr = request.query_params.get('fpr', '')
        if not fpr:
            return Response({'error': 'fpr is required.'}, status=status.HTTP_400_BAD_REQUEST)
        verified = KeyVerification.objects.filter(verifier=request.user, target_fpr=fpr).exists()
        return Response({'fpr': fpr, 'verified': verified})


class VerificationFeaturesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        config = get_config()
        return Response({
            'telemetry': config.telemetry_enabled,
            'passkey_unlock': config.passkey_unlock_enabled,
            'payload_max_age_seconds': config.payload_max_age_seconds,
        })
