"""Counter-maintaining operations on posts.

Every operation that touches an interaction or comment row adjusts the
matching counter on the post in the same transaction, so the stored counts
never drift from the rows they summarise.
"""
import logging

from django.db import transaction
from django.db.models import F

from .models import Comment, Interaction, Post

logger = logging.getLogger(__name__)


def _increment(post_id, field, amount=1):
    Post.objects.filter(pk=post_id).update(**{field: F(field) + amount})


def _current(post_id, field):
    return Post.objects.values_list(field, flat=True).get(pk=post_id)


def toggle_like(user, post):
    """Like the post if the user has not liked it yet, otherwise unlike it.

    Returns:
        (liked, likes_count) after the toggle
    """
    with transaction.atomic():
        # Lock the post row so concurrent toggles for it are serialised
        Post.objects.select_for_update().only('pk').get(pk=post.pk)
        deleted, _ = Interaction.objects.filter(user=user, post=post, type=Interaction.LIKE).delete()
        if deleted:
            Post.objects.filter(pk=post.pk, likes_count__gt=0).update(likes_count=F('likes_count') - 1)
            liked = False
        else:
            Interaction.objects.create(user=user, post=post, type=Interaction.LIKE)
            _increment(post.pk, 'likes_count')
            liked = True
        likes_count = _current(post.pk, 'likes_count')

    logger.info(f"User {user.pk} {'liked' if liked else 'unliked'} post {post.pk}, likes_count={likes_count}")
    post.likes_count = likes_count
    return liked, likes_count


def liked_post_ids(user, posts):
    """Ids of the given posts the user has liked."""
    if not user.is_authenticated:
        return set()
    return set(
        Interaction.objects.filter(user=user, post__in=posts, type=Interaction.LIKE).values_list('post_id', flat=True)
    )


def increment_views_count(post):
    _increment(post.pk, 'views_count')
    post.views_count = _current(post.pk, 'views_count')
    return post.views_count


def increment_shares_count(post):
    _increment(post.pk, 'shares_count')
    post.shares_count = _current(post.pk, 'shares_count')
    return post.shares_count


def add_comment(user, post, content):
    content = (content or '').strip()
    if not content:
        raise ValueError("Comment content must not be empty")

    with transaction.atomic():
        comment = Comment.objects.create(post=post, author=user, content=content)
        _increment(post.pk, 'comments_count')
    post.comments_count = _current(post.pk, 'comments_count')
    logger.info(f"Comment {comment.pk} added to post {post.pk} by user {user.pk}")
    return comment


def reconcile_counters(post):
    """Recompute likes_count and comments_count from the stored rows."""
    with transaction.atomic():
        likes = Interaction.objects.filter(post=post, type=Interaction.LIKE).count()
        comments = Comment.objects.filter(post=post).count()
        updated = Post.objects.filter(pk=post.pk).exclude(likes_count=likes, comments_count=comments).update(
            likes_count=likes, comments_count=comments
        )
    if updated:
        logger.warning(f"Post {post.pk} counters were out of sync, reset to likes={likes} comments={comments}")
    post.likes_count = likes
    post.comments_count = comments
    return updated > 0
