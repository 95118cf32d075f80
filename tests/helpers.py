from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone

from feed.models import Category, Post, Profile


def make_user(username='alice', password='secret123', is_active=True):
    email = f"{username}@example.com"
    user = get_user_model().objects.create_user(
        username=email, email=email, password=password, is_active=is_active
    )
    Profile.objects.create(user=user, username=username)
    return user


def make_category(name='Climate', slug=None):
    return Category.objects.create(name=name, slug=slug or name.lower())


def make_post(slug='earthquakes', title=None, days_ago=0, **fields):
    fields.setdefault('custom_html', '<div id="globe"></div>')
    fields.setdefault('custom_script', 'viz.register(viz.library()(viz.container));')
    post = Post.objects.create(slug=slug, title=title or slug.replace('-', ' ').title(), **fields)
    if days_ago:
        Post.objects.filter(pk=post.pk).update(created_at=timezone.now() - timedelta(days=days_ago))
        post.refresh_from_db()
    return post
