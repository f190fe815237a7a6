from types import SimpleNamespace

import pytest

from reddit_tree.errors import TransportError


def comment(name, parent_id, replies=""):
    return {
        "kind": "t1",
        "data": {
            "name": name,
            "parent_id": parent_id,
            "body": f"body of {name}",
            "replies": replies,
        },
    }


def listing(*children):
    return {"kind": "Listing", "data": {"children": list(children)}}


def more(children, parent_id, name="t1_more"):
    return {
        "kind": "more",
        "data": {
            "name": name,
            "id": name[3:],
            "parent_id": parent_id,
            "count": len(children),
            "children": list(children),
        },
    }


def thread(article_name, *top_level):
    article = {
        "kind": "t3",
        "data": {"name": article_name, "title": "An AMA", "selftext": "", "replies": ""},
    }
    return [listing(article), listing(*top_level)]


class FakeTransport:
    """
    In-memory reddit: serves a thread payload and morechildren responses.

    `children` maps a child ref to the things returned for it; refs listed in
    `failing` make the whole batch fail.
    """

    def __init__(self, thread_payload=None, children=None, failing=(), root_error=None):
        self.thread_payload = thread_payload
        self.children = children or {}
        self.failing = set(failing)
        self.root_error = root_error
        self.thread_calls = []
        self.more_calls = []

    async def get_thread(self, thread_id):
        self.thread_calls.append(thread_id)
        if self.root_error is not None:
            raise self.root_error
        return self.thread_payload

    async def get_more_children(self, thread_id, child_refs):
        self.more_calls.append(list(child_refs))
        if self.failing & set(child_refs):
            raise TransportError("morechildren returned status code 500", status_code=500)
        things = []
        for ref in child_refs:
            things.extend(self.children.get(ref, []))
        return things


@pytest.fixture
def reddit():
    return SimpleNamespace(
        comment=comment,
        listing=listing,
        more=more,
        thread=thread,
        FakeTransport=FakeTransport,
    )
