from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.exceptions import error_response
from portal.permissions import IsPatientRole, ViewAccess, profile_of
from portal.serializers.directory import RecordCreateSerializer
from portal.services import records as record_service
from portal.services.audit import log_action


@api_view(['GET'])
@permission_classes([IsAuthenticated, ViewAccess('medical_records')])
def list_records(request):
    viewer = profile_of(request.user)
    qs = record_service.scoped_records(viewer).order_by('-created_at', '-id')
    patient_id = request.query_params.get('patientId')
    if patient_id:
        try:
            qs = qs.filter(patient_id=int(patient_id))
        except ValueError:
            return error_response('validation_error', 'patientId must be an integer', 400)
    return Response({'ok': True, 'data': [record_service.serialize_record(r) for r in qs]})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def create_record(request):
    s = RecordCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        record = record_service.create_record(
            profile_of(request.user),
            title=vd.get('title'),
            description=vd.get('description'),
            file=vd.get('file'),
        )
    except PermissionError as e:
        return error_response('forbidden', str(e), 403)
    except ValueError as e:
        return error_response('validation_error', str(e), 400)
    log_action(user=request.user, action='record_upload', object_type='medical_record', object_id=record.pk,
               detail={'size': record.size})
    return Response({'ok': True, 'data': record_service.serialize_record(record)}, status=201)
