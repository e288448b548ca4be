import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from telemed.auth import jwt_handler
from telemed.auth.dependencies import get_current_user, require_role
from telemed.auth.security import get_password_hash, verify_password
from telemed.routes.auth_routes import TokenRequest, issue_token, me


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


@pytest.fixture
def doctor_with_password(db, doctor):
    doctor.hashed_password = get_password_hash('correct horse')
    db.commit()
    return doctor


def test_token_request_normalizes_email() -> None:
    assert TokenRequest(email=' Doctor@Example.COM ', password='x').email == 'doctor@example.com'


def test_password_hash_round_trip() -> None:
    hashed = get_password_hash('correct horse')

    assert hashed != 'correct horse'
    assert verify_password('correct horse', hashed) is True
    assert verify_password('wrong', hashed) is False
    assert verify_password('anything', '') is False


def test_issue_token_encodes_subject_and_role(db, doctor_with_password) -> None:
    response = issue_token(TokenRequest(email='doctor@example.com', password='correct horse'), db=db)

    payload = jwt_handler.decode_access_token(response.access_token)
    assert payload['sub'] == 'doctor@example.com'
    assert payload['role'] == 'doctor'
    assert response.token_type == 'bearer'


def test_issue_token_rejects_wrong_password(db, doctor_with_password) -> None:
    with pytest.raises(HTTPException) as exception_info:
        issue_token(TokenRequest(email='doctor@example.com', password='guess'), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Incorrect email or password'


def test_issue_token_rejects_account_without_password(db, patient) -> None:
    with pytest.raises(HTTPException) as exception_info:
        issue_token(TokenRequest(email=patient.email, password=''), db=db)

    assert exception_info.value.status_code == 401


def test_issue_token_rejects_unknown_user(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        issue_token(TokenRequest(email='nobody@example.com', password='secret'), db=db)

    assert exception_info.value.status_code == 401


def test_get_current_user_resolves_token(db, patient) -> None:
    token = jwt_handler.create_access_token(subject=patient.email, role=patient.role)

    user = get_current_user(credentials=_credentials(token), db=db)

    assert user.id == patient.id
    assert me(current_user=user) == {'id': patient.id, 'email': patient.email, 'role': 'patient'}


def test_get_current_user_rejects_token_with_stale_role(db, patient) -> None:
    token = jwt_handler.create_access_token(subject=patient.email, role='doctor')

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_credentials(token), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Token role is out of date'


def test_get_current_user_rejects_garbage_token(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_credentials('not-a-jwt'), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_require_role_blocks_other_roles(doctor, patient) -> None:
    doctor_only = require_role('doctor')

    assert doctor_only(current_user=doctor) is doctor
    with pytest.raises(HTTPException) as exception_info:
        doctor_only(current_user=patient)

    assert exception_info.value.status_code == 403
