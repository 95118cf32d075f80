import xml.etree.ElementTree as ET

from django.test import TestCase, override_settings
from django.urls import reverse

from feed.pages import select_initial_post

from feed import interactions

from tests.helpers import make_category, make_post, make_user

SITEMAP_NS = {'sm': 'http://www.sitemaps.org/schemas/sitemap/0.9'}


class FeedPageTest(TestCase):
    def test_post_without_category_has_no_category_tag(self):
        make_post('no-category')
        response = self.client.get(reverse('feed:feed'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'No Category')
        self.assertNotContains(response, 'category-tag')

    def test_post_with_category_shows_tag(self):
        make_post('with-category', category=make_category('Oceans'))
        response = self.client.get(reverse('feed:feed'))
        self.assertContains(response, 'class="category-tag"')
        self.assertContains(response, 'Oceans')

    def test_deep_link_selects_matching_post(self):
        make_post('older', days_ago=2)
        make_post('newest')
        response = self.client.get(reverse('feed:feed'), {'post': 'older'})
        self.assertEqual(response.context['initial_index'], 1)
        self.assertContains(response, 'data-initial-index="1"')

    def test_unknown_deep_link_falls_back_to_first_post(self):
        make_post('older', days_ago=2)
        make_post('newest')
        response = self.client.get(reverse('feed:feed'), {'post': 'does-not-exist'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['initial_index'], 0)
        self.assertEqual(response.context['posts'][0].slug, 'newest')

    def test_liked_posts_render_as_liked(self):
        user = make_user()
        liked = make_post('liked-one')
        make_post('other')
        interactions.toggle_like(user, liked)

        response = self.client.get(reverse('feed:feed'))
        self.assertEqual(response.context['liked_ids'], set())
        self.assertNotContains(response, 'action-like liked')

        self.client.force_login(user)
        response = self.client.get(reverse('feed:feed'))
        self.assertEqual(response.context['liked_ids'], {liked.pk})
        self.assertContains(response, 'action-like liked', count=1)
        response = self.client.get(reverse('feed:home'))
        self.assertContains(response, 'action-like liked', count=1)

    def test_empty_feed(self):
        response = self.client.get(reverse('feed:feed'))
        self.assertContains(response, 'No visualizations yet')

    def test_select_initial_post(self):
        posts = [make_post('a'), make_post('b')]
        self.assertEqual(select_initial_post(posts, 'b'), 1)
        self.assertEqual(select_initial_post(posts, None), 0)
        self.assertEqual(select_initial_post([], 'a'), 0)


class HomePageTest(TestCase):
    def setUp(self):
        self.maps = make_category('Maps')
        self.quakes = make_post('quakes', title='Earthquakes', views_count=10, likes_count=1, category=self.maps)
        self.flights = make_post('flights', title='Flight Paths', views_count=50, likes_count=0, days_ago=3)

    def test_search_matches_title_and_category(self):
        response = self.client.get(reverse('feed:home'), {'q': 'earth'})
        self.assertEqual([p.slug for p in response.context['posts']], ['quakes'])
        response = self.client.get(reverse('feed:home'), {'q': 'MAPS'})
        self.assertEqual([p.slug for p in response.context['posts']], ['quakes'])

    def test_category_filter(self):
        response = self.client.get(reverse('feed:home'), {'category': 'maps'})
        self.assertEqual([p.slug for p in response.context['posts']], ['quakes'])

    def test_sort_by_views(self):
        response = self.client.get(reverse('feed:home'), {'sort': 'views'})
        self.assertEqual([p.slug for p in response.context['posts']], ['flights', 'quakes'])

    def test_unknown_sort_falls_back_to_date(self):
        response = self.client.get(reverse('feed:home'), {'sort': 'random'})
        self.assertEqual(response.context['sort'], 'date')
        self.assertEqual([p.slug for p in response.context['posts']], ['quakes', 'flights'])

    def test_external_url_links_out(self):
        make_post('elsewhere', external_url='https://example.org/viz')
        response = self.client.get(reverse('feed:home'))
        self.assertContains(response, 'href="https://example.org/viz"')


class CategoriesPageTest(TestCase):
    def test_stats_and_selected_category_posts(self):
        maps = make_category('Maps')
        make_category('Empty')
        make_post('a', category=maps, views_count=1500)
        make_post('b', category=maps, views_count=500)

        response = self.client.get(reverse('feed:categories'), {'category': maps.pk})
        categories = response.context['categories']
        self.assertEqual(categories[0].name, 'Maps')
        self.assertEqual(categories[0].post_count, 2)
        self.assertEqual(categories[0].total_views, 2000)
        self.assertEqual(categories[0].avg_views_per_post, 1000)
        self.assertEqual(categories[1].post_count, 0)
        self.assertEqual(response.context['total_views'], 2000)
        self.assertEqual([p.slug for p in response.context['category_posts']], ['a', 'b'])
        self.assertContains(response, '2.0K')


class EmbedPageTest(TestCase):
    def test_embed_renders_post(self):
        post = make_post('quakes', title='Earthquakes', description='Recent quakes')
        response = self.client.get(reverse('feed:embed', args=['quakes']))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Earthquakes')
        self.assertContains(response, 'View Full Site')
        self.assertContains(response, f"/visual/quakes/?slot=post-{post.pk}")
        self.assertNotIn('X-Frame-Options', response.headers)

    def test_missing_slug_renders_not_found(self):
        response = self.client.get(reverse('feed:embed', args=['nothing']))
        self.assertEqual(response.status_code, 404)
        self.assertContains(response, 'Visualization Not Found', status_code=404)

    def test_type_filter_mismatch_renders_not_found(self):
        make_post('quakes', type='globe')
        response = self.client.get(reverse('feed:embed', args=['quakes']), {'type': 'cesium'})
        self.assertContains(response, 'Visualization Not Found', status_code=404)
        response = self.client.get(reverse('feed:embed', args=['quakes']), {'type': 'globe'})
        self.assertEqual(response.status_code, 200)


class VisualPageTest(TestCase):
    def test_visual_document_is_sandboxed(self):
        make_post('quakes', custom_html='<div id="quake-globe"></div>')
        response = self.client.get(reverse('feed:visual', args=['quakes']), {'slot': 'post-1'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Security-Policy'], 'sandbox allow-scripts')
        self.assertContains(response, '<div id="quake-globe"></div>')

    def test_missing_visual(self):
        response = self.client.get(reverse('feed:visual', args=['nothing']))
        self.assertEqual(response.status_code, 404)


@override_settings(SITE_BASE_URL='https://viz.example.com')
class SitemapTest(TestCase):
    def test_sitemap_has_post_and_embed_entries(self):
        older = make_post('older', days_ago=5)
        newer = make_post('newer')

        response = self.client.get(reverse('feed:sitemap-xml'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/xml')
        self.assertIn('max-age=3600', response['Cache-Control'])
        self.assertIn('public', response['Cache-Control'])

        root = ET.fromstring(response.content)
        entries = {
            url.find('sm:loc', SITEMAP_NS).text: url.find('sm:lastmod', SITEMAP_NS).text
            for url in root.findall('sm:url', SITEMAP_NS)
        }
        self.assertEqual(len(entries), 1 + 2 * 2)
        self.assertIn('https://viz.example.com/', entries)
        for post in (older, newer):
            self.assertEqual(entries[f"https://viz.example.com/?post={post.slug}"], post.created_at.isoformat())
            self.assertEqual(entries[f"https://viz.example.com/embed/{post.slug}/"], post.created_at.isoformat())

    def test_sitemap_tree_lists_urls_and_totals(self):
        make_post('quakes', likes_count=3, comments_count=2)
        make_post('flights', likes_count=4)
        response = self.client.get(reverse('feed:sitemap-tree'))
        self.assertEqual(response.context['total_likes'], 7)
        self.assertEqual(response.context['total_comments'], 2)
        self.assertContains(response, 'https://viz.example.com/?post=quakes')
        self.assertContains(response, 'https://viz.example.com/embed/flights/')
