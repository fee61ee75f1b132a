from typing import Any, Callable, MutableMapping

from jinja2 import BaseLoader, ChoiceLoader, Environment, PackageLoader, PrefixLoader, StrictUndefined, Template

LANGUAGE_ALIASES: dict[str, str] = {
    'cn': 'zh',
    'zh-cn': 'zh',
}


class TemplateLoader(BaseLoader):
    def __init__(self, package_name: str, languages: tuple[str, ...] = ('zh',), default_lang: str = 'zh'):
        self.default_lang = LANGUAGE_ALIASES.get(default_lang, default_lang)
        self.loader_map: dict[str, list[BaseLoader]] = {}
        for lang in languages:
            self.loader_map[lang] = [PackageLoader(package_name, package_path=f"templates/{lang}")]
        for alias, lang in LANGUAGE_ALIASES.items():
            if lang in self.loader_map:
                self.loader_map[alias] = self.loader_map[lang]
        self._loader = self._build_jinja_loader(self.loader_map)

    @staticmethod
    def _build_jinja_loader(loader_map: dict[str, list[BaseLoader]]):
        choice_loaders = dict((key, ChoiceLoader(loaders)) for (key, loaders) in loader_map.items())
        return PrefixLoader(choice_loaders)

    def get_source(self, environment: "Environment", template: str) -> tuple[str, str | None, Callable[[], bool] | None]:
        return self._loader.get_source(environment, template)

    def list_templates(self) -> list[str]:
        return self._loader.list_templates()

    def load(self, environment: Environment, name: str, globals: MutableMapping[str, Any] | None = None) -> Template:
        return self._loader.load(environment, name, globals)

    def add_loaders(self, lang: str, *loaders: BaseLoader):
        """Put *loaders* in front of the existing ones for *lang*."""
        self.loader_map[lang] = list(loaders) + self.loader_map.get(lang, [])
        for alias, target in LANGUAGE_ALIASES.items():
            if target == lang:
                self.loader_map[alias] = self.loader_map[lang]
        self._loader = self._build_jinja_loader(self.loader_map)


class TemplateEnvironment(Environment):
    """Jinja2 environment resolving ``<lang>/<name>`` with language fallback.

    Templates are rendered with ``trim_blocks`` and ``lstrip_blocks`` so that
    block tags on their own line leave no blank lines behind.
    """

    def __init__(self, package_name: str, default_lang: str | None = None, languages: tuple[str, ...] = ('zh',)):
        self.loader = TemplateLoader(package_name, languages, default_lang or 'zh')
        super().__init__(
            loader=self.loader,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=False,
        )

    def add_loaders(self, lang: str, *loaders: BaseLoader):
        self.loader.add_loaders(lang, *loaders)

    def load_template(self, name: str, lang: str | None = None, globals: MutableMapping[str, Any] | None = None):
        default_lang = self.loader.default_lang
        lang_options = set(self.loader.loader_map.keys())

        # Build candidate languages list by priority
        candidate_langs: list[str] = []
        if lang:
            candidate_langs.append(LANGUAGE_ALIASES.get(lang, lang))
        if default_lang not in candidate_langs:
            candidate_langs.append(default_lang)
        for l in sorted(lang_options):
            if l not in candidate_langs:
                candidate_langs.append(l)

        template_names = [f"{l}/{name}" for l in candidate_langs if l in lang_options]
        return self.select_template(names=template_names, globals=globals)

    def render(self, template_name: str, lang: str | None = None, **kwargs: Any) -> str:
        return self.load_template(template_name, lang).render(**kwargs).strip()

    def render_lines(self, template_name: str, lang: str | None = None, **kwargs: Any) -> list[str]:
        """Render *template_name* and return its non-blank lines."""
        rendered = self.load_template(template_name, lang).render(**kwargs)
        return [line.strip() for line in rendered.splitlines() if line.strip()]
