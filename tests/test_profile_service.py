import pytest

from errors import NotFound
from profile_service import PROFILE_ID
from schemas import Company, Skill


def test_get_or_create_is_idempotent(profile, db):
    first = profile.create_or_get_profile()
    second = profile.get_profile()

    assert first["id"] == second["id"] == PROFILE_ID
    assert db.profiles.count_documents({}) == 1
    assert first["is_published"] is False
    assert first["social_links"]["github"] == ""
    assert first["experience"]["years"] == 0


def test_update_profile_creates_on_first_use(profile, db):
    updated = profile.update_profile({"full_name": "Jane Doe", "location": "Lisbon"})

    assert updated["full_name"] == "Jane Doe"
    assert updated["title"] == ""
    assert db.profiles.count_documents({}) == 1


def test_social_links_merge(profile):
    profile.update_social_links({"github": "https://github.com/jane"})
    updated = profile.update_social_links({"linkedin": "https://linkedin.com/in/jane"})

    assert updated["social_links"]["github"] == "https://github.com/jane"
    assert updated["social_links"]["linkedin"] == "https://linkedin.com/in/jane"
    assert updated["social_links"]["twitter"] == ""


def test_experience_merges_and_dumps_companies(profile):
    profile.update_experience({"years": 5, "title": "Engineer"})
    updated = profile.update_experience({"companies": [Company(name="Acme", position="Dev")]})

    assert updated["experience"]["years"] == 5
    assert updated["experience"]["title"] == "Engineer"
    assert updated["experience"]["companies"][0]["name"] == "Acme"


def test_skills_are_replaced(profile):
    profile.update_skills([Skill(category="Backend", items=["python"])])
    updated = profile.update_skills([Skill(category="Frontend", items=["css"], level="advanced")])

    assert [s["category"] for s in updated["skills"]] == ["Frontend"]
    assert updated["skills"][0]["level"] == "advanced"


def test_technologies_are_replaced(profile):
    profile.update_technologies(["python"])
    assert profile.update_technologies(["go", "rust"])["technologies"] == ["go", "rust"]


def test_publish_toggle(profile):
    profile.get_profile()
    with pytest.raises(NotFound):
        profile.get_published_profile()

    profile.toggle_publish_status(True)
    assert profile.get_published_profile()["is_published"] is True

    profile.toggle_publish_status(False)
    with pytest.raises(NotFound):
        profile.get_published_profile()


def test_reupload_replaces_profile_image(profile, media):
    first = profile.upload_profile_image(b"one")
    second = profile.upload_profile_image(b"two")

    assert second["profile_image"] != first["profile_image"]
    assert media.deleted == [("image", first["profile_image_public_id"])]
    assert profile.get_profile()["profile_image_public_id"] == second["profile_image_public_id"]


def test_failed_delete_keeps_new_image(profile, media):
    profile.upload_cover_image(b"one")
    media.fail_deletes = True

    second = profile.upload_cover_image(b"two")

    assert profile.get_profile()["cover_image"] == second["cover_image"]


def test_delete_profile_image(profile, media):
    uploaded = profile.upload_profile_image(b"one")

    cleared = profile.delete_profile_image()

    assert cleared["profile_image"] == ""
    assert cleared["profile_image_public_id"] == ""
    assert media.deleted_ids == [uploaded["profile_image_public_id"]]


def test_cv_upload_and_delete_use_documents(profile, media):
    uploaded = profile.upload_cv(b"%PDF-1.4")
    assert media.uploads == [("raw", uploaded["cv_public_id"])]

    cleared = profile.delete_cv()

    assert cleared["cv_url"] == ""
    assert media.deleted == [("raw", uploaded["cv_public_id"])]


def test_get_cv(profile):
    profile.toggle_publish_status(True)
    with pytest.raises(NotFound) as exc:
        profile.get_cv()
    assert exc.value.message == "CV not found"

    profile.upload_cv(b"%PDF-1.4")
    assert profile.get_cv() == b"%PDF-1.4"
