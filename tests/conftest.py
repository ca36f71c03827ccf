"""
In-memory users/posts/comments used by the resdoc tests

users 1 (alice) and 2 (bob)
posts 1 and 2 by alice, 3 by bob
comments 1, 3 and 4 (hidden) by bob, 2 by alice; 1, 2 and 4 on post 1, 3 on post 2
"""
import pytest
from resdoc import Config, Registry, RelationshipDefinition, ResourceType, TO_MANY, TO_ONE


class User:
    def __init__(self, id: int, name: str, email: str = "") -> None:
        self.id = id
        self.name = name
        self.email = email
        self.posts = []
        self.comments = []


class Post:
    def __init__(self, id: int, title: str, body: str = "") -> None:
        self.id = id
        self.title = title
        self.body = body
        self.user = None
        self.comments = []


class Comment:
    def __init__(self, id: int, body: str, hidden: bool = False) -> None:
        self.id = id
        self.body = body
        self.hidden = hidden
        self.post = None
        self.user = None


class Store:
    def __init__(self) -> None:
        self.users = {}
        self.posts = {}
        self.comments = {}
        self.commits = 0

    def commit(self) -> None:
        self.commits += 1

    def add_user(self, user: User) -> User:
        self.users[str(user.id)] = user
        return user

    def add_post(self, post: Post, user: User) -> Post:
        post.user = user
        user.posts.append(post)
        self.posts[str(post.id)] = post
        return post

    def add_comment(self, comment: Comment, post: Post, user: User) -> Comment:
        comment.post = post
        comment.user = user
        post.comments.append(comment)
        user.comments.append(comment)
        self.comments[str(comment.id)] = comment
        return comment


def visible_comments(comments, post):
    return [comment for comment in comments if not comment.hidden]


def build_registry(store: Store) -> Registry:
    registry = Registry()
    registry.register(
        User,
        ResourceType(
            "users",
            ["name", "email"],
            [RelationshipDefinition("posts", TO_MANY, target="posts"), RelationshipDefinition("comments", TO_MANY, target="comments")],
            finder=lambda jsonapi_id: store.users.get(str(jsonapi_id)),
            collection=lambda: list(store.users.values()),
            commit=store.commit,
        ),
    )
    registry.register(
        Post,
        ResourceType(
            "posts",
            ["title", "body"],
            [RelationshipDefinition("user", TO_ONE, target="users", mutable=False), RelationshipDefinition("comments", TO_MANY, target="comments")],
            finder=lambda jsonapi_id: store.posts.get(str(jsonapi_id)),
            collection=lambda: list(store.posts.values()),
            scopes={"comments": visible_comments},
            commit=store.commit,
        ),
    )
    registry.register(
        Comment,
        ResourceType(
            "comments",
            ["body"],
            [RelationshipDefinition("post", TO_ONE, target="posts"), RelationshipDefinition("user", TO_ONE, target="users")],
            finder=lambda jsonapi_id: store.comments.get(str(jsonapi_id)),
            collection=lambda: list(store.comments.values()),
            attribute_predicates={"text": True, "hidden": lambda name: False},
            commit=store.commit,
            model_name="comment",
        ),
    )
    return registry


@pytest.fixture
def store() -> Store:
    store = Store()
    alice = store.add_user(User(1, "alice", "alice@example.com"))
    bob = store.add_user(User(2, "bob", "bob@example.com"))
    post1 = store.add_post(Post(1, "first", "hello"), alice)
    post2 = store.add_post(Post(2, "second", "world"), alice)
    store.add_post(Post(3, "third", "again"), bob)
    store.add_comment(Comment(1, "nice"), post1, bob)
    store.add_comment(Comment(2, "thanks"), post1, alice)
    store.add_comment(Comment(3, "great"), post2, bob)
    store.add_comment(Comment(4, "spam", hidden=True), post1, bob)
    return store


@pytest.fixture
def registry(store: Store) -> Registry:
    return build_registry(store)


@pytest.fixture
def config() -> Config:
    return Config()
