import pytest

from urls import get_user_slug, profile_query_params, task_links, task_query_params


def test_slug_appends_email_local_part():
    assert get_user_slug("John Doe", "john.doe@example.com") == "john-doe-johndoe"


def test_slug_is_deterministic():
    assert get_user_slug("Ana  María!", "ana@x.io") == get_user_slug("Ana  María!", "ana@x.io")


def test_slug_drops_non_ascii_letters():
    assert get_user_slug("Zoë Müller", "zoë@example.com") == "zo-mller-zo"
    assert get_user_slug("Ana  María!", "ana@x.io").isascii()


def test_slug_cleans_name():
    assert get_user_slug("  --Hello,  World--  ", "hw@example.com") == "hello-world-hw"


def test_slug_suffix_is_truncated():
    assert get_user_slug("Sam", "samantha.longname@example.com") == "sam-samanthalo"


def test_slug_falls_back_to_email():
    assert get_user_slug("", "jane.doe@example.com") == "jane-doe-janedoe"
    assert get_user_slug("!!!", "x@example.com") == "x-x"


def test_slug_without_email_or_name():
    assert get_user_slug("Solo", None) == "solo"
    assert get_user_slug(None, None) == "user"


def test_same_name_different_email_gives_different_slugs():
    assert get_user_slug("John Doe", "john@a.com") != get_user_slug("John Doe", "jdoe@b.com")


def test_task_query_params():
    assert task_query_params() == ""
    assert task_query_params("abc") == "?taskId=abc"
    assert task_query_params("abc", "edit") == "?taskId=abc&action=edit"
    with pytest.raises(ValueError):
        task_query_params("abc", "archive")


def test_profile_query_params():
    assert profile_query_params() == ""
    assert profile_query_params("editing", "name") == "?action=editing&field=name"
    assert profile_query_params("changePassword") == "?action=changePassword"


def test_task_links():
    links = task_links("jo-doe-jo", "t1")
    assert links == {
        "edit": "/tasks/jo-doe-jo?taskId=t1&action=edit",
        "delete": "/tasks/jo-doe-jo?taskId=t1&action=delete",
        "view": "/tasks/jo-doe-jo?taskId=t1&action=view",
    }
