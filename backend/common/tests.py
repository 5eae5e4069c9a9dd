from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.exceptions import NotFound

from .exceptions import Conflict, api_exception_handler


class ExceptionHandlerTests(SimpleTestCase):
    def test_api_exceptions_keep_their_status(self):
        response = api_exception_handler(NotFound("Missing"), {})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["detail"], "Missing")

    def test_conflict_is_409(self):
        response = api_exception_handler(Conflict("Already sent"), {})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_unexpected_errors_become_generic_500(self):
        response = api_exception_handler(RuntimeError("secret details"), {"view": None})
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {"detail": "Internal server error"})
