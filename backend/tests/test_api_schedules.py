def test_validate_endpoint_accepts_valid_schedule(client):
    response = client.post(
        "/api/schedules/validate",
        json={"items": [{"day": "Mon", "startTime": "17:00"}, {"day": "Mon", "startTime": "18:00"}], "duration": 60},
    )
    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "items": [{"day": "Mon", "startTime": "17:00"}, {"day": "Mon", "startTime": "18:00"}],
    }


def test_validate_endpoint_reports_overlap(client):
    response = client.post(
        "/api/schedules/validate",
        json={"items": [{"day": "Mon", "startTime": "17:00"}, {"day": "Mon", "startTime": "17:30"}], "duration": 60},
    )
    assert response.status_code == 422
    payload = response.json()
    assert payload["message"] == "Overlapping time slots on Mon"
    assert payload["details"]["timeRanges"] == ["17:00-18:00", "17:30-18:30"]


def test_validate_endpoint_rejects_out_of_range_duration(client):
    response = client.post(
        "/api/schedules/validate",
        json={"items": [{"day": "Mon", "startTime": "17:00"}], "duration": 5},
    )
    assert response.status_code == 422
    assert "detail" in response.json()


def test_conflicts_endpoint_reports_teacher_and_students(client, seed):
    center = seed.center()
    teacher = seed.teacher(center, "Ms. Lane")
    student = seed.profile(center, "Ann")
    algebra = seed.academic_class(center, teacher, duration=60)
    group = seed.group(algebra, slots=[("Mon", "17:00")], students=[student])

    body = {
        "items": [{"day": "Mon", "startTime": "17:30"}],
        "duration": 60,
        "subject": {"teacherId": teacher.id, "studentIds": [student.id]},
    }
    response = client.post("/api/schedules/conflicts", json=body)
    assert response.status_code == 200
    payload = response.json()
    assert payload["teacher"] == {
        "subjectId": teacher.id,
        "subjectName": "Ms. Lane",
        "subjectType": "teacher",
        "conflicts": [{"day": "Mon", "timeRange": "17:00-18:00"}],
    }
    assert [report["subjectId"] for report in payload["students"]] == [student.id]

    excluded = client.post("/api/schedules/conflicts", json={**body, "excludeGroupIds": [group.id]})
    assert excluded.json() == {"teacher": None, "students": []}
