"""
Framework adapter descriptors.

Static table of the adapter packages each framework type needs, plus the
aliases accepted for an explicit framework override.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PluginDescriptor:
    """
    One adapter package.

    Attributes:
        key: Table key, e.g. ``vue3-jsx``
        display_name: Name given to plugins that do not name themselves
        package_name: Package specifier, optionally with a subpath
        required: Whether a missing package deserves a warning
        options: Arguments passed to the factory
        import_name: Framework-specific named factory
        when_dependency: Only load when the project declares this package
    """

    key: str
    display_name: str
    package_name: str
    required: bool = True
    options: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    import_name: str | None = None
    when_dependency: str | None = None


PLUGIN_DESCRIPTORS: dict[str, PluginDescriptor] = {
    d.key: d
    for d in (
        PluginDescriptor("vue3", "vite:vue", "@vitejs/plugin-vue"),
        PluginDescriptor(
            "vue3-jsx",
            "vite:vue-jsx",
            "@vitejs/plugin-vue-jsx",
            required=False,
            options={"transformOn": True, "mergeProps": True},
            when_dependency="@vitejs/plugin-vue-jsx",
        ),
        PluginDescriptor("vue2", "vite:vue2", "@vitejs/plugin-vue2"),
        PluginDescriptor("react", "vite:react", "@vitejs/plugin-react"),
        PluginDescriptor("preact", "preact", "@preact/preset-vite"),
        PluginDescriptor(
            "svelte",
            "vite-plugin-svelte",
            "@sveltejs/vite-plugin-svelte",
            import_name="svelte",
        ),
        PluginDescriptor(
            "sveltekit", "vite-plugin-sveltekit", "@sveltejs/kit/vite", import_name="sveltekit"
        ),
        PluginDescriptor("solid", "solid", "vite-plugin-solid"),
        PluginDescriptor("lit", "lit", "@vitejs/plugin-lit", required=False),
        PluginDescriptor(
            "qwik", "vite-plugin-qwik", "@builder.io/qwik/optimizer", import_name="qwikVite"
        ),
        PluginDescriptor(
            "angular",
            "@analogjs/vite-plugin-angular",
            "@analogjs/vite-plugin-angular",
            options={"tsconfig": "./tsconfig.app.json"},
        ),
    )
}

FRAMEWORK_PLUGINS: dict[str, tuple[str, ...]] = {
    "vue3": ("vue3", "vue3-jsx"),
    "vue2": ("vue2",),
    "react": ("react",),
    "preact": ("preact",),
    "svelte": ("svelte",),
    "sveltekit": ("sveltekit",),
    "solid": ("solid",),
    "lit": ("lit",),
    "qwik": ("qwik",),
    "angular": ("angular",),
    "vanilla": (),
}

FRAMEWORK_ALIASES = {
    "vue": "vue3",
    "solid-js": "solid",
    "svelte-kit": "sveltekit",
    "kit": "sveltekit",
    "js": "vanilla",
    "ts": "vanilla",
}


def normalize_framework(name: str) -> str:
    """Map a user-supplied framework name onto a framework type."""
    key = name.strip().lower()
    return FRAMEWORK_ALIASES.get(key, key)


def descriptors_for(
    framework_type: str,
    table: dict[str, PluginDescriptor] = PLUGIN_DESCRIPTORS,
    plugins: dict[str, tuple[str, ...]] = FRAMEWORK_PLUGINS,
) -> list[PluginDescriptor] | None:
    """Descriptors for a framework type, or None if the type is unknown."""
    keys = plugins.get(normalize_framework(framework_type))
    if keys is None:
        return None
    return [table[key] for key in keys]
