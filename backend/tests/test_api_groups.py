def _world(seed):
    center = seed.center()
    teacher = seed.teacher(center, "Ms. Lane")
    ann = seed.profile(center, "Ann")
    ben = seed.profile(center, "Ben")
    physics = seed.academic_class(center, teacher, duration=60, name="Physics")
    return center, teacher, ann, ben, physics


def test_group_lifecycle_over_http(client, seed):
    _, _, ann, ben, physics = _world(seed)

    created = client.post(
        "/api/groups",
        json={
            "classId": physics.id,
            "name": "Evening",
            "scheduleItems": [{"day": "Wed", "startTime": "18:00"}, {"day": "Mon", "startTime": "18:00"}],
            "studentIds": [ann.id],
        },
    )
    assert created.status_code == 201
    group = created.json()
    assert [(item["day"], item["startTime"]) for item in group["schedule_items"]] == [("Mon", "18:00"), ("Wed", "18:00")]
    assert group["student_ids"] == [ann.id]

    replaced = client.put(
        f"/api/groups/{group['id']}/schedule",
        json={"scheduleItems": [{"day": "Fri", "startTime": "07:30"}]},
    )
    assert replaced.status_code == 200
    assert [item["startTime"] for item in replaced.json()["schedule_items"]] == ["07:30"]

    assigned = client.post(f"/api/groups/{group['id']}/students", json={"studentIds": [ben.id, ann.id]})
    assert assigned.status_code == 200
    assert assigned.json()["succeeded"] == [ben.id]
    assert assigned.json()["failed"][0]["id"] == ann.id

    fetched = client.get(f"/api/groups/{group['id']}")
    assert sorted(fetched.json()["student_ids"]) == sorted([ann.id, ben.id])


def test_teacher_conflict_returns_409(client, seed):
    _, _, _, _, physics = _world(seed)
    seed.group(physics, slots=[("Mon", "17:00")])

    response = client.post(
        "/api/groups",
        json={
            "classId": physics.id,
            "name": "Clash",
            "scheduleItems": [{"day": "Mon", "startTime": "17:30"}],
            "skipWarning": True,
        },
    )
    assert response.status_code == 409
    details = response.json()["details"]
    assert details["kind"] == "teacher"
    assert details["conflicts"][0]["conflicts"] == [{"day": "Mon", "timeRange": "17:00-18:00"}]


def test_student_conflict_respects_skip_warning(client, seed):
    center, _, ann, _, physics = _world(seed)
    seed.group(physics, slots=[("Mon", "17:00")], students=[ann])
    chemistry = seed.academic_class(center, seed.teacher(center, "Mr. Cole"), duration=60, name="Chemistry")
    body = {
        "classId": chemistry.id,
        "name": "Overlap",
        "scheduleItems": [{"day": "Mon", "startTime": "17:30"}],
        "studentIds": [ann.id],
    }

    blocked = client.post("/api/groups", json=body)
    assert blocked.status_code == 409
    assert blocked.json()["details"]["kind"] == "student"

    allowed = client.post("/api/groups", json={**body, "skipWarning": True})
    assert allowed.status_code == 201


def test_unknown_group_is_404(client):
    response = client.get("/api/groups/missing")
    assert response.status_code == 404
    assert response.json()["message"] == "Group with id missing not found"


def test_remove_delete_and_restore_over_http(client, seed):
    _, _, ann, ben, physics = _world(seed)
    group = seed.group(physics, slots=[("Mon", "17:00")], students=[ann, ben])

    removed = client.post(f"/api/groups/{group.id}/students/remove", json={"studentIds": [ben.id, "nobody"]})
    assert removed.status_code == 200
    assert removed.json()["succeeded"] == [ben.id]
    assert removed.json()["failed"][0]["id"] == "nobody"
    assert client.get(f"/api/groups/{group.id}").json()["student_ids"] == [ann.id]

    assert client.delete(f"/api/groups/{group.id}").status_code == 204
    assert client.get(f"/api/groups/{group.id}").status_code == 404

    restored = client.post(f"/api/groups/{group.id}/restore")
    assert restored.status_code == 200
    assert restored.json()["student_ids"] == [ann.id]
    assert client.post(f"/api/groups/{group.id}/restore", json={"skipWarning": True}).status_code == 400


def test_restore_conflict_returns_409(client, seed):
    _, _, _, _, physics = _world(seed)
    group = seed.group(physics, slots=[("Mon", "17:00")])
    assert client.delete(f"/api/groups/{group.id}").status_code == 204
    seed.group(physics, slots=[("Mon", "17:30")], name="Group B")

    response = client.post(f"/api/groups/{group.id}/restore", json={"skipWarning": True})

    assert response.status_code == 409
    assert response.json()["details"]["kind"] == "teacher"
