from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework import status

from courses.serializers import CertificateSerializer
from courses.services.certificate_service import find_certificate, get_active_certificate


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def get_program_certificate_view(request, program_id):
    """Get the authenticated user's active certificate for a program."""
    certificate = get_active_certificate(request.user.id, program_id)
    if not certificate:
        return Response({
            "success": False,
            "message": "Certificate not found. Complete every course in the program to receive a certificate."
        }, status=status.HTTP_404_NOT_FOUND)

    return Response({
        "success": True,
        "data": CertificateSerializer(certificate).data,
        "message": "Certificate retrieved successfully."
    }, status=status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([AllowAny])
def verify_certificate_view(request, code):
    """Public check of a certificate number or verification code."""
    cert = find_certificate(code)
    if not cert:
        return Response({"success": False, "message": "Certificate not found."}, status=status.HTTP_404_NOT_FOUND)
    data = {
        'certificate_number': cert.certificate_number,
        'issued_at': cert.issued_at,
        'completion_date': cert.completion_date,
        'final_score': cert.final_score,
        'valid': not cert.revoked,
        'revoked_at': cert.revoked_at,
        'student': {
            'id': cert.student_id,
            'name': cert.student_name,
        },
        'program': {
            'id': cert.program_id,
            'title': cert.program_name or cert.program.title,
        }
    }
    message = "Certificate has been revoked." if cert.revoked else "Certificate verified."
    return Response({"success": True, "data": data, "message": message}, status=status.HTTP_200_OK)
