from bson import ObjectId
from fastapi.testclient import TestClient

from campus_api import models
from campus_api.main import app


def test_faculty_crud_flow(client):
    # create with defaults
    r = client.post('/api/faculties', json={'code': 'eng'})
    assert r.status_code == 201
    created = r.json()
    assert created['name'] == 'New Faculty'
    assert created['code'] == 'ENG'
    assert created['budget'] == 0
    assert created['numDepartments'] == 0
    assert created['isActive'] is True
    assert ObjectId.is_valid(created['_id'])
    fid = created['_id']

    r = client.get('/api/faculties')
    assert r.status_code == 200
    assert [f['_id'] for f in r.json()] == [fid]

    r = client.get(f'/api/faculties/{fid}')
    assert r.status_code == 200
    assert r.json()['code'] == 'ENG'

    # partial update leaves untouched fields alone
    r = client.put(f'/api/faculties/{fid}', json={'dean': 'Dr. Okafor', 'code': 'sci', 'numDepartments': 4})
    assert r.status_code == 200
    updated = r.json()
    assert updated['dean'] == 'Dr. Okafor'
    assert updated['code'] == 'SCI'
    assert updated['numDepartments'] == 4
    assert updated['name'] == 'New Faculty'

    r = client.delete(f'/api/faculties/{fid}')
    assert r.status_code == 200
    assert r.json() == {'message': 'Faculty deleted'}
    r = client.get(f'/api/faculties/{fid}')
    assert r.status_code == 404
    assert r.json() == {'message': 'Faculty not found'}


def test_faculty_missing_and_malformed_ids(client):
    missing = str(ObjectId())
    assert client.get(f'/api/faculties/{missing}').status_code == 404
    assert client.put(f'/api/faculties/{missing}', json={'dean': 'x'}).status_code == 404
    assert client.delete(f'/api/faculties/{missing}').status_code == 404
    assert client.get('/api/faculties/not-an-id').status_code == 404


def test_faculty_validation_and_duplicates(client):
    r = client.post('/api/faculties', json={'code': 'law', 'budget': -5})
    assert r.status_code == 400
    assert 'budget' in r.json()['message']

    assert client.post('/api/faculties', json={'code': 'law'}).status_code == 201
    dup = client.post('/api/faculties', json={'code': 'LAW', 'name': 'Law again'})
    assert dup.status_code == 400
    assert 'code' in dup.json()['message']


def test_student_crud_flow(client):
    faculty = client.post('/api/faculties', json={'code': 'cs', 'name': 'Computing'}).json()
    course = client.post('/api/courses', json={'name': 'Algorithms', 'code': 'cs201', 'faculty': faculty['_id']}).json()

    r = client.post('/api/students', json={
        'firstName': 'Ada',
        'lastName': 'Lovelace',
        'email': 'Ada@Example.COM',
        'studentId': 's1001',
        'faculty': faculty['_id'],
        'courses': [course['_id']],
        'gpa': 3.9,
    })
    assert r.status_code == 201
    student = r.json()
    assert student['email'] == 'ada@example.com'
    assert student['studentId'] == 'S1001'
    assert student['faculty'] == faculty['_id']
    assert student['courses'] == [course['_id']]
    sid = student['_id']

    r = client.put(f'/api/students/{sid}', json={'gpa': 3.5, 'isActive': False})
    assert r.status_code == 200
    assert r.json()['gpa'] == 3.5
    assert r.json()['isActive'] is False
    assert r.json()['firstName'] == 'Ada'

    assert client.delete(f'/api/students/{sid}').json() == {'message': 'Student deleted'}
    assert client.get('/api/students').json() == []


def test_student_validation(client):
    base = {'firstName': 'Alan', 'lastName': 'Turing', 'email': 'alan@example.com', 'studentId': 's2'}
    assert client.post('/api/students', json={**base, 'gpa': 5}).status_code == 400
    assert client.post('/api/students', json={**base, 'email': 'not-an-email'}).status_code == 400
    assert client.post('/api/students', json={**base, 'faculty': 'nope'}).status_code == 400
    assert client.post('/api/students', json={'firstName': 'Alan'}).status_code == 400
    assert client.post('/api/students', json=base).status_code == 201
    assert client.post('/api/students', json={**base, 'studentId': 's3'}).status_code == 400


def test_course_crud_flow(client):
    r = client.post('/api/courses', json={'name': 'Databases', 'code': 'inf101'})
    assert r.status_code == 201
    course = r.json()
    assert course['code'] == 'INF101'
    assert course['credits'] == 3
    cid = course['_id']

    r = client.put(f'/api/courses/{cid}', json={'credits': 6, 'instructor': 'Prof. Codd'})
    assert r.status_code == 200
    assert r.json()['credits'] == 6
    assert r.json()['instructor'] == 'Prof. Codd'

    assert client.put(f'/api/courses/{cid}', json={'credits': 0}).status_code == 400
    assert client.get(f'/api/courses/{cid}').json()['name'] == 'Databases'
    assert client.delete(f'/api/courses/{cid}').json() == {'message': 'Course deleted'}
    assert client.delete(f'/api/courses/{cid}').status_code == 404


def test_database_unavailable_returns_503():
    # no dependency override and no connection established
    plain = TestClient(app)
    r = plain.get('/api/students')
    assert r.status_code == 503
    assert r.json() == {'message': 'Database unavailable'}
    assert plain.post('/api/faculties', json={'code': 'x'}).status_code == 503


def test_root_health_and_unknown_route():
    plain = TestClient(app)
    root = plain.get('/')
    assert root.status_code == 200
    assert root.json()['message'] == 'Student Management API'
    assert root.json()['endpoints']['students'] == '/api/students'

    health = plain.get('/health', headers={'X-Request-ID': 'abc123'})
    assert health.status_code == 200
    assert health.json()['status'] == 'ok'
    assert 'status' in health.json()['database']
    assert health.headers['X-Request-ID'] == 'abc123'

    missing = plain.get('/api/nothing-here')
    assert missing.status_code == 404
    assert missing.json() == {'status': 'error', 'message': 'Route not found', 'path': '/api/nothing-here'}


def test_document_model_renders_object_ids():
    oid, fac = ObjectId(), ObjectId()
    student = models.Student.model_validate({
        '_id': oid, 'firstName': 'A', 'lastName': 'B', 'email': 'a@b.co',
        'studentId': 'S1', 'faculty': fac, 'courses': [fac],
    })
    dumped = student.model_dump(by_alias=True)
    assert dumped['_id'] == str(oid)
    assert dumped['faculty'] == str(fac)
    assert dumped['courses'] == [str(fac)]


def test_blank_codes_and_student_numbers_are_rejected(client):
    r = client.post('/api/faculties', json={'code': '   '})
    assert r.status_code == 400
    assert 'code' in r.json()['message']
    assert client.post('/api/courses', json={'name': 'Logic', 'code': ' '}).status_code == 400
    student = {'firstName': 'Grace', 'lastName': 'Hopper', 'email': 'grace@example.com', 'studentId': '  '}
    assert client.post('/api/students', json=student).status_code == 400

    faculty = client.post('/api/faculties', json={'code': ' med '}).json()
    assert faculty['code'] == 'MED'
    r = client.put(f"/api/faculties/{faculty['_id']}", json={'code': '  '})
    assert r.status_code == 400
    assert client.get('/api/faculties').json()[0]['code'] == 'MED'


def test_unhandled_error_returns_500_body(client, monkeypatch):
    async def broken(self):
        raise RuntimeError('collection scan failed')

    monkeypatch.setattr('campus_api.services.CourseService.list', broken)
    failing = TestClient(app, raise_server_exceptions=False)
    r = failing.get('/api/courses')
    assert r.status_code == 500
    assert r.json() == {'status': 'error', 'message': 'collection scan failed'}
