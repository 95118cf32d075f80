import json
import re

from django.test import TestCase

from feed.models import Post
from feed.visuals import (
    LIBRARIES,
    LifecycleError,
    VisualLifecycle,
    build_visual_document,
    library_for,
    visual_config,
)

from tests.helpers import make_post


class VisualLifecycleTest(TestCase):
    def test_successful_run_and_teardown(self):
        slot = VisualLifecycle('post-1')
        slot.start().library_ready().execute().succeeded()
        self.assertEqual(slot.state, 'running')
        self.assertTrue(slot.is_active)
        slot.teardown()
        self.assertEqual(slot.state, 'idle')
        self.assertEqual(slot.history, [
            'idle', 'loading-library', 'ready', 'executing', 'running', 'tearing-down', 'idle',
        ])

    def test_failed_script_records_error_until_idle(self):
        slot = VisualLifecycle('post-1')
        slot.start().library_ready().execute().failed('Globe is not a function')
        self.assertEqual(slot.state, 'errored')
        self.assertEqual(slot.error, 'Globe is not a function')
        slot.teardown()
        self.assertIsNone(slot.error)

    def test_library_load_failure_goes_straight_to_errored(self):
        slot = VisualLifecycle('post-1')
        slot.start().failed('Failed to load three.min.js')
        self.assertEqual(slot.state, 'errored')

    def test_cannot_execute_before_library_is_ready(self):
        slot = VisualLifecycle('post-1').start()
        with self.assertRaises(LifecycleError):
            slot.execute()

    def test_cannot_restart_a_running_slot(self):
        slot = VisualLifecycle('post-1').start().library_ready().execute().succeeded()
        with self.assertRaises(LifecycleError):
            slot.start()

    def test_unknown_state_is_rejected(self):
        with self.assertRaises(LifecycleError):
            VisualLifecycle('post-1').transition('paused')

    def test_teardown_of_idle_slot_is_noop(self):
        slot = VisualLifecycle('post-1').teardown()
        self.assertEqual(slot.history, ['idle'])

    def test_teardown_while_loading(self):
        slot = VisualLifecycle('post-1').start().teardown()
        self.assertEqual(slot.state, 'idle')


class VisualDocumentTest(TestCase):
    def _embedded_json(self, document, element_id):
        match = re.search(rf'<script id="{element_id}" type="application/json">(.*?)</script>', document, re.S)
        self.assertIsNotNone(match)
        return json.loads(match.group(1))

    def test_every_post_type_has_a_library(self):
        for post_type, _ in Post.POST_TYPES:
            self.assertIn(post_type, LIBRARIES)
        with self.assertRaises(ValueError):
            library_for('flash')

    def test_config_for_leaflet_post(self):
        post = make_post('tiles', type=Post.LEAFLET)
        config = visual_config(post)
        self.assertEqual(config['slot'], f"post-{post.pk}")
        self.assertEqual(config['global'], 'L')
        self.assertEqual(config['disposer'], 'leaflet')
        self.assertTrue(config['stylesheets'][0].endswith('leaflet.css'))
        self.assertEqual(config['transitions']['idle'], ['loading-library'])

    def test_cesium_config_carries_base_url(self):
        post = make_post('terrain', type=Post.CESIUM)
        config = visual_config(post, 'slot-9')
        self.assertEqual(config['slot'], 'slot-9')
        self.assertIn('cesiumBaseUrl', config)

    def test_document_injects_fragments_and_escapes_script(self):
        post = make_post(
            'quakes',
            custom_css='#globe { height: 100%; }',
            custom_html='<div id="globe"></div>',
            custom_script='console.log("</script><b>")',
        )
        document = build_visual_document(post)
        self.assertIn('#globe { height: 100%; }', document)
        self.assertIn('<div id="globe"></div>', document)
        self.assertNotIn('console.log("</script><b>")', document)
        self.assertEqual(self._embedded_json(document, 'viz-source'), 'console.log("</script><b>")')
        config = self._embedded_json(document, 'viz-config')
        self.assertEqual(config['scripts'], LIBRARIES[Post.CUSTOM]['scripts'])
