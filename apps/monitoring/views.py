import logging

from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiTypes
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .runtime import get_session
from .serializers import (
    TrackedPersonSerializer,
    TrackedPersonUpdateSerializer,
    SampleGenerationSerializer,
    DeviceRegistrationSerializer,
    SensorReadingSerializer,
    AcknowledgeAlertSerializer,
    RaiseAlertSerializer,
    CampusSettingsSerializer,
    ErrorResponseSerializer,
)
from .session import PreconditionError

logger = logging.getLogger(__name__)


def error_response(exc):
    """Map core exceptions onto HTTP responses."""
    if isinstance(exc, PreconditionError):
        return Response({'error': str(exc)}, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, LookupError):
        # str() of a KeyError keeps the quotes, so use the first argument
        message = exc.args[0] if exc.args else 'Not found.'
        return Response({'error': message}, status=status.HTTP_404_NOT_FOUND)
    return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)


def _actor(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user.get_username()
    return None


# ====== HEALTH CHECK ======
@extend_schema(summary="Health check", responses={200: OpenApiTypes.OBJECT})
@api_view(['GET'])
@permission_classes([AllowAny])
def health_check(request):
    """Simple health check endpoint"""
    return Response({
        "status": "ok",
        "service": "Calamity Watch API",
        "version": "1.0.0"
    })


# ====== ROSTER ======
class StudentListView(APIView):
    """List the roster (optionally filtered) or add one person."""

    @extend_schema(
        summary="List tracked people",
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, description="safe, trapped, missing or all"),
            OpenApiParameter('group', OpenApiTypes.STR, description="Group/class label or all"),
            OpenApiParameter('q', OpenApiTypes.STR, description="Search id, name, group, section and devices"),
        ],
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request, *args, **kwargs):
        people = get_session().list_people(
            status=request.query_params.get('status'),
            group=request.query_params.get('group'),
            query=request.query_params.get('q'),
        )
        return Response(people)

    @extend_schema(
        summary="Add a tracked person",
        request=TrackedPersonSerializer,
        responses={201: OpenApiTypes.OBJECT, 400: ErrorResponseSerializer},
    )
    def post(self, request, *args, **kwargs):
        serializer = TrackedPersonSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        session = get_session()
        try:
            person = session.add_person(serializer.validated_data)
        except ValueError as e:
            return error_response(e)
        return Response(session.get_person(person.id), status=status.HTTP_201_CREATED)


class StudentDetailView(APIView):

    @extend_schema(summary="Get a tracked person", responses={200: OpenApiTypes.OBJECT, 404: ErrorResponseSerializer})
    def get(self, request, person_id, *args, **kwargs):
        try:
            return Response(get_session().get_person(person_id))
        except LookupError as e:
            return error_response(e)

    @extend_schema(
        summary="Edit a tracked person",
        description="A status change to `trapped` raises an SOS alert, as it does in the simulator.",
        request=TrackedPersonUpdateSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
    )
    def patch(self, request, person_id, *args, **kwargs):
        serializer = TrackedPersonUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        session = get_session()
        try:
            session.update_person(person_id, serializer.validated_data)
            return Response(session.get_person(person_id))
        except (LookupError, ValueError) as e:
            return error_response(e)

    @extend_schema(summary="Remove a tracked person", responses={204: None, 404: ErrorResponseSerializer})
    def delete(self, request, person_id, *args, **kwargs):
        try:
            get_session().remove_person(person_id)
        except LookupError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class SampleStudentsView(APIView):

    @extend_schema(
        summary="Generate sample people",
        request=SampleGenerationSerializer,
        responses={201: OpenApiTypes.OBJECT},
    )
    def post(self, request, *args, **kwargs):
        serializer = SampleGenerationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        added = get_session().generate_sample_people(serializer.validated_data['count'])
        return Response({'added': len(added)}, status=status.HTTP_201_CREATED)


class StudentSummaryView(APIView):

    @extend_schema(summary="Roster totals", responses={200: OpenApiTypes.OBJECT})
    def get(self, request, *args, **kwargs):
        return Response(get_session().roster_summary())


# ====== DEVICES ======
class DeviceListView(APIView):

    @extend_schema(summary="List registered devices", responses={200: OpenApiTypes.OBJECT})
    def get(self, request, *args, **kwargs):
        return Response(get_session().devices.list())

    @extend_schema(
        summary="Register a device",
        request=DeviceRegistrationSerializer,
        responses={201: OpenApiTypes.OBJECT, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
    )
    def post(self, request, *args, **kwargs):
        serializer = DeviceRegistrationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        try:
            device = get_session().register_device(data['id'], data['type'], assigned_to=data.get('assigned_to'))
        except (LookupError, ValueError) as e:
            return error_response(e)
        return Response(device, status=status.HTTP_201_CREATED)


class DeviceDetailView(APIView):

    @extend_schema(summary="Unregister a device", responses={204: None, 404: ErrorResponseSerializer})
    def delete(self, request, device_id, *args, **kwargs):
        try:
            get_session().unregister_device(device_id)
        except LookupError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DevicePingView(APIView):

    @extend_schema(summary="Ping a device", request=None,
                   responses={200: OpenApiTypes.OBJECT, 404: ErrorResponseSerializer})
    def post(self, request, device_id, *args, **kwargs):
        try:
            return Response(get_session().ping_device(device_id))
        except LookupError as e:
            return error_response(e)


class DeviceStatsView(APIView):

    @extend_schema(summary="Device statistics", responses={200: OpenApiTypes.OBJECT})
    def get(self, request, *args, **kwargs):
        return Response(get_session().devices.stats())


# ====== CALAMITY MODE ======
class StartMonitoringView(APIView):
    """Activate calamity mode. Calling it again restarts the refresh timer."""

    @extend_schema(summary="Activate calamity mode", request=None,
                   responses={200: OpenApiTypes.OBJECT, 409: ErrorResponseSerializer})
    def post(self, request, *args, **kwargs):
        try:
            snapshot = get_session().start_monitoring(actor=_actor(request))
        except PreconditionError as e:
            logger.info(f"Calamity mode not activated: {e}")
            return error_response(e)
        return Response(snapshot)


class StopMonitoringView(APIView):

    @extend_schema(summary="Deactivate calamity mode", request=None, responses={200: OpenApiTypes.OBJECT})
    def post(self, request, *args, **kwargs):
        session = get_session()
        session.stop_monitoring(actor=_actor(request))
        return Response(session.get_snapshot())


class TickView(APIView):
    """Run one simulator step without waiting for the timer (drills and tests)."""

    @extend_schema(summary="Single-step the simulator", request=None, responses={200: OpenApiTypes.OBJECT})
    def post(self, request, *args, **kwargs):
        session = get_session()
        transitions = session.tick()
        return Response({
            'transitions': [
                {'person_id': t.person_id, 'from': t.old_status, 'to': t.new_status}
                for t in transitions
            ],
            'snapshot': session.get_snapshot(),
        })


class SnapshotView(APIView):

    @extend_schema(summary="Current dashboard snapshot", responses={200: OpenApiTypes.OBJECT})
    def get(self, request, *args, **kwargs):
        return Response(get_session().get_snapshot())


# ====== ALERTS ======
class ActiveAlertListView(APIView):

    @extend_schema(summary="Active SOS alerts, newest first", responses={200: OpenApiTypes.OBJECT})
    def get(self, request, *args, **kwargs):
        return Response(get_session().active_alerts())


class AcknowledgeAlertView(APIView):

    @extend_schema(
        summary="Acknowledge an active SOS alert",
        description="`index` is the position in the current active list. Out-of-range indices are ignored.",
        request=AcknowledgeAlertSerializer,
        responses={200: OpenApiTypes.OBJECT},
    )
    def post(self, request, index, *args, **kwargs):
        serializer = AcknowledgeAlertSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        alert = get_session().acknowledge(index, alert_id=serializer.validated_data.get('alert_id'))
        return Response({
            'acknowledged': alert is not None,
            'alert': alert.to_dict() if alert is not None else None,
        })


class RaiseAlertView(APIView):

    @extend_schema(
        summary="Trigger an SOS alert for a person",
        request=RaiseAlertSerializer,
        responses={201: OpenApiTypes.OBJECT, 404: ErrorResponseSerializer},
    )
    def post(self, request, *args, **kwargs):
        serializer = RaiseAlertSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            alert = get_session().raise_alert(serializer.validated_data['person_id'])
        except LookupError as e:
            return error_response(e)
        return Response(alert.to_dict(), status=status.HTTP_201_CREATED)


# ====== EVENTS & SETTINGS ======
class EventListView(APIView):

    @extend_schema(
        summary="Recent system events",
        parameters=[
            OpenApiParameter('type', OpenApiTypes.STR, description="Only events of this type"),
            OpenApiParameter('limit', OpenApiTypes.INT, description="Default 100"),
        ],
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request, *args, **kwargs):
        try:
            limit = int(request.query_params.get('limit', 100))
        except ValueError:
            return Response({'error': "'limit' must be an integer."}, status=status.HTTP_400_BAD_REQUEST)
        events = get_session().recent_events(limit=max(limit, 0), event_type=request.query_params.get('type'))
        return Response(events)


class CampusSettingsView(APIView):

    @extend_schema(summary="Campus settings", responses={200: OpenApiTypes.OBJECT})
    def get(self, request, *args, **kwargs):
        return Response(get_session().get_settings())

    @extend_schema(summary="Update campus settings", request=CampusSettingsSerializer,
                   responses={200: OpenApiTypes.OBJECT})
    def patch(self, request, *args, **kwargs):
        serializer = CampusSettingsSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(get_session().update_settings(serializer.validated_data))


# ====== LIVE SENSOR FEED ======
class SensorReadingView(APIView):
    """
    Position reports from field devices. Open like the device SOS endpoint,
    since tags post without a user session.
    """
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Submit a sensor reading",
        request=SensorReadingSerializer,
        responses={200: OpenApiTypes.OBJECT, 404: ErrorResponseSerializer},
    )
    def post(self, request, *args, **kwargs):
        serializer = SensorReadingSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        session = get_session()
        try:
            person, transition = session.apply_sensor_reading(
                data['device_id'], data['latitude'], data['longitude'], emergency=data['emergency'],
            )
        except LookupError as e:
            return error_response(e)
        return Response({
            'person': session.get_person(person.id),
            'status_changed': transition is not None,
        })
