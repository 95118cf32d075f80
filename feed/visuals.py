"""Visualization loader for post slots.

A post's stored HTML, CSS and script are rendered into a standalone document
that the host page mounts in a sandboxed iframe, one iframe per visible slot.
Inside the frame the bootstrap loads the library scripts one after another,
waits for the library global, then runs the stored script with an explicit
context object. Every resource the script registers through that context is
disposed on teardown, and dropping the iframe discards whatever is left.

The slot lifecycle is defined once here (``VisualLifecycle``) and shipped to
the frame bootstrap as a transition table, so the browser and the server
agree on the legal states.
"""
import logging

from django.conf import settings
from django.template.loader import render_to_string

from .models import Post

logger = logging.getLogger(__name__)

THREE_JS = 'https://unpkg.com/three@0.160.0/build/three.min.js'
GLOBE_GL_JS = 'https://unpkg.com/globe.gl@2.30.0/dist/globe.gl.min.js'
CESIUM_BASE_URL = 'https://cesium.com/downloads/cesiumjs/releases/1.111/Build/Cesium/'
LEAFLET_BASE_URL = 'https://unpkg.com/leaflet@1.9.4/dist/'

# scripts load in order; global is the symbol that must exist before the
# stored script runs; disposer names the teardown routine in the bootstrap
LIBRARIES = {
    Post.CUSTOM: {
        'scripts': [THREE_JS, GLOBE_GL_JS],
        'stylesheets': [],
        'global': 'Globe',
        'disposer': 'three',
    },
    Post.GLOBE: {
        'scripts': [THREE_JS, GLOBE_GL_JS],
        'stylesheets': [],
        'global': 'Globe',
        'disposer': 'three',
    },
    Post.CESIUM: {
        'scripts': [CESIUM_BASE_URL + 'Cesium.js'],
        'stylesheets': [CESIUM_BASE_URL + 'Widgets/widgets.css'],
        'global': 'Cesium',
        'disposer': 'cesium',
    },
    Post.LEAFLET: {
        'scripts': [LEAFLET_BASE_URL + 'leaflet.js'],
        'stylesheets': [LEAFLET_BASE_URL + 'leaflet.css'],
        'global': 'L',
        'disposer': 'leaflet',
    },
}

IDLE = 'idle'
LOADING_LIBRARY = 'loading-library'
READY = 'ready'
EXECUTING = 'executing'
RUNNING = 'running'
ERRORED = 'errored'
TEARING_DOWN = 'tearing-down'


class LifecycleError(Exception):
    """Raised when a slot is asked to move to a state it cannot reach."""


class VisualLifecycle:
    """State machine of a single visualization slot.

    idle -> loading-library -> ready -> executing -> (running | errored)
    -> tearing-down -> idle. A library that fails to load goes straight to
    errored, and a slot can be torn down from any state other than idle.
    """

    TRANSITIONS = {
        IDLE: (LOADING_LIBRARY,),
        LOADING_LIBRARY: (READY, ERRORED, TEARING_DOWN),
        READY: (EXECUTING, TEARING_DOWN),
        EXECUTING: (RUNNING, ERRORED, TEARING_DOWN),
        RUNNING: (TEARING_DOWN,),
        ERRORED: (TEARING_DOWN,),
        TEARING_DOWN: (IDLE,),
    }

    def __init__(self, slot_id):
        self.slot_id = slot_id
        self.state = IDLE
        self.error = None
        self.history = [IDLE]

    def can_transition(self, target):
        return target in self.TRANSITIONS.get(self.state, ())

    def transition(self, target, error=None):
        if target not in self.TRANSITIONS:
            raise LifecycleError(f"Unknown state '{target}'")
        if not self.can_transition(target):
            raise LifecycleError(f"Slot {self.slot_id}: cannot go from '{self.state}' to '{target}'")
        logger.debug(f"Slot {self.slot_id}: {self.state} -> {target}")
        self.state = target
        self.history.append(target)
        if target == ERRORED:
            self.error = error or 'Unknown error'
        elif target == IDLE:
            self.error = None
        return self

    def start(self):
        return self.transition(LOADING_LIBRARY)

    def library_ready(self):
        return self.transition(READY)

    def execute(self):
        return self.transition(EXECUTING)

    def succeeded(self):
        return self.transition(RUNNING)

    def failed(self, error):
        return self.transition(ERRORED, error=error)

    def teardown(self):
        """Move an active slot back to idle; tearing down an idle slot is a no-op."""
        if self.state == IDLE:
            return self
        if self.state != TEARING_DOWN:
            self.transition(TEARING_DOWN)
        return self.transition(IDLE)

    @property
    def is_active(self):
        return self.state != IDLE

    @classmethod
    def transition_table(cls):
        return {state: list(targets) for state, targets in cls.TRANSITIONS.items()}


def library_for(post_type):
    try:
        return LIBRARIES[post_type]
    except KeyError:
        raise ValueError(f"No visualization library for post type '{post_type}'")


def slot_id_for(post):
    return f"post-{post.pk}"


def visual_config(post, slot_id=None):
    """Configuration handed to the frame bootstrap as JSON."""
    library = library_for(post.type)
    config = {
        'slot': slot_id or slot_id_for(post),
        'postType': post.type,
        'scripts': list(library['scripts']),
        'stylesheets': list(library['stylesheets']),
        'global': library['global'],
        'disposer': library['disposer'],
        'transitions': VisualLifecycle.transition_table(),
    }
    if post.type == Post.CESIUM:
        config['cesiumBaseUrl'] = CESIUM_BASE_URL
        config['cesiumToken'] = settings.CESIUM_TOKEN
    return config


def build_visual_document(post, slot_id=None):
    """Render the standalone HTML document that runs a post's visualization."""
    config = visual_config(post, slot_id)
    logger.info(f"Building visual document for post {post.pk} ({post.type}) in slot {config['slot']}")
    return render_to_string('feed/visual_document.html', {
        'post': post,
        'config': config,
        'css': post.custom_css,
        'html': post.custom_html,
        'script': post.custom_script,
    })
