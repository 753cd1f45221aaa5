import pytest
from sqlmodel import Session, select

from examhub import errors, models, schemas, services
from examhub.database import DEFAULT_ROLES, engine, seed_roles
from examhub.repositories import RoleRepository
from examhub.utils.rate_limit import InMemoryRateLimiter


def test_seed_roles_is_idempotent_and_ordered():
    with Session(engine) as session:
        assert seed_roles(session) == len(DEFAULT_ROLES)
        assert seed_roles(session) == 0
        roles = session.exec(select(models.Role).order_by(models.Role.id)).all()
    assert [r.name for r in roles] == DEFAULT_ROLES
    assert roles[3].id == 4 and roles[3].name == 'User'


def test_integrity_error_becomes_conflict():
    # two writers that both passed the uniqueness pre-check
    with Session(engine) as session:
        repo = RoleRepository(session)
        repo.create(models.Role(name='Admin'))
        with pytest.raises(errors.Conflict):
            repo.create(models.Role(name='Admin'))
        assert len(repo.list()[0]) == 1


def test_entity_service_collects_all_problems():
    with Session(engine) as session:
        svc = services.ExamResultService(session)
        payload = schemas.ExamResultCreate(user_id=1, exam_id=2, result_html='x')
        with pytest.raises(errors.ValidationError) as exc:
            svc.create(payload)
    assert set(exc.value.errors) == {'user_id', 'exam_id'}
    assert exc.value.to_dict()['message'] == 'The given data was invalid.'


def test_not_found_message_uses_label():
    with Session(engine) as session:
        with pytest.raises(errors.NotFound) as exc:
            services.InstituteExamService(session).get(42)
    assert exc.value.message == 'InstituteExam not found'
    assert exc.value.status_code == 404


def test_passwords_are_hashed():
    with Session(engine) as session:
        user = services.UserService(session).create(
            schemas.UserCreate(full_name='Ada', email='ada@example.com', password='secret123')
        )
        assert user.password_hash != 'secret123'
        assert services.verify_password('secret123', user.password_hash)
        inst = services.InstituteService(session).create(
            schemas.InstituteCreate(name='Lab', username='lab', password='lab-pass')
        )
        assert services.verify_password('lab-pass', inst.password_hash)


def test_token_lifecycle():
    with Session(engine) as session:
        user = services.UserService(session).create(
            schemas.UserCreate(full_name='Ada', email='ada@example.com', password='secret123')
        )
        tokens = services.TokenService(session)
        token = tokens.issue(user)
        resolved_user, row = tokens.resolve(token)
        assert resolved_user.id == user.id
        assert row.last_used_at is not None
        tokens.revoke(row)
        with pytest.raises(errors.Unauthenticated):
            tokens.resolve(token)


def test_rate_limiter_blocks_and_resets():
    limiter = InMemoryRateLimiter(max_requests=lambda: 1, window_seconds=lambda: 60)
    limiter.hit('1.2.3.4:/login')
    limiter.hit('5.6.7.8:/login')
    with pytest.raises(errors.RateLimited) as exc:
        limiter.hit('1.2.3.4:/login')
    assert exc.value.status_code == 429
    assert int(exc.value.headers['Retry-After']) >= 1
    limiter.reset()
    limiter.hit('1.2.3.4:/login')


def test_schema_normalization():
    ue = schemas.UserExamCreate(user_id=1, exam_id=1, answers=[{'q': 1, 'a': 'B'}])
    assert ue.answers == '[{"q": 1, "a": "B"}]'
    assert ue.is_active is True
    assert schemas.RoleCreate(name='X', is_active=None).is_active is True
    assert schemas.RoleCreate.model_validate({'name': 'X', 'describtion': 'legacy'}).description == 'legacy'
    assert schemas.InstituteUpdate(password='').password is None
    with pytest.raises(ValueError):
        schemas.ExamUpdate(question_count=None)
    # omitted fields stay unset on partial updates
    assert schemas.ExamUpdate(price=3).model_dump(exclude_unset=True) == {'price': 3}


def test_repository_lookups_outside_integer_range():
    with Session(engine) as session:
        repo = RoleRepository(session)
        repo.create(models.Role(name='Admin'))
        assert repo.get(2 ** 63) is None
        assert repo.exists(-(2 ** 63) - 1) is False
        assert repo.find_by('name', 'Admin') is not None


def test_user_email_lookup_is_case_insensitive():
    with Session(engine) as session:
        services.UserService(session).create(
            schemas.UserCreate(full_name='Ada', email='Ada@example.com', password='secret123')
        )
        assert services.UserService(session).authenticate('ADA@EXAMPLE.COM', 'secret123') is not None
