"""Fixed tables of known architecture patterns.

Each pattern names its layers (with folder aliases, path regexes and the
layers each one may depend on) and the weighted folder or file indicators
used to score how well a project fits it. All regexes are case-insensitive
and searched anywhere in a path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple


def _compile(*patterns: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


@dataclass(frozen=True)
class ArchitectureLayer:
    name: str
    aliases: Tuple[str, ...]
    patterns: Tuple[Pattern[str], ...]
    color: str
    level: int
    allowed_dependencies: Tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self):
        alias_patterns = tuple(
            re.compile(r"[/\\]" + re.escape(alias) + r"[/\\]", re.IGNORECASE) for alias in self.aliases
        )
        object.__setattr__(self, "_alias_patterns", alias_patterns)

    def matches(self, path: str) -> bool:
        """Whether ``path`` sits in an aliased folder or matches a layer regex."""
        return any(p.search(path) for p in self._alias_patterns) or any(
            p.search(path) for p in self.patterns
        )


@dataclass(frozen=True)
class Indicator:
    kind: str  # folder | file
    pattern: Pattern[str]
    weight: int
    required: bool = False


def _folder(pattern: str, weight: int, required: bool = False) -> Indicator:
    return Indicator("folder", re.compile(pattern, re.IGNORECASE), weight, required)


def _file(pattern: str, weight: int, required: bool = False) -> Indicator:
    return Indicator("file", re.compile(pattern, re.IGNORECASE), weight, required)


@dataclass(frozen=True)
class ArchitecturePattern:
    name: str
    description: str
    flow_direction: str  # top-down | outside-in | bidirectional
    strict: bool
    layers: List[ArchitectureLayer] = field(default_factory=list)
    indicators: List[Indicator] = field(default_factory=list)

    def layer_of(self, path: str) -> Optional[ArchitectureLayer]:
        """The first layer, in declaration order, that ``path`` belongs to."""
        for layer in self.layers:
            if layer.matches(path):
                return layer
        return None


# ===================================================================
# Clean Architecture
# ===================================================================

CLEAN_ARCHITECTURE = ArchitecturePattern(
    name="Clean Architecture",
    description="Concentric layers with the domain at the centre",
    flow_direction="outside-in",
    strict=True,
    layers=[
        ArchitectureLayer(
            "presentation",
            ("presentation", "ui", "web", "api", "controllers"),
            _compile(r"presentation/", r"ui/", r"web/", r"api/", r"controllers?/"),
            "#00ff88", 0, ("application", "domain"),
            "Outer layer: UI, API and CLI",
        ),
        ArchitectureLayer(
            "infrastructure",
            ("infrastructure", "infra", "adapters", "frameworks", "external"),
            _compile(r"infrastructure/", r"infra/", r"adapters?/", r"frameworks?/", r"external/"),
            "#888888", 0, ("application", "domain"),
            "Outer layer: technical implementations",
        ),
        ArchitectureLayer(
            "application",
            ("application", "app", "usecases", "use-cases", "interactors"),
            _compile(r"application/", r"app/", r"use-?cases?/", r"interactors?/"),
            "#00ccff", 1, ("domain",),
            "Use cases",
        ),
        ArchitectureLayer(
            "domain",
            ("domain", "core", "entities", "business"),
            _compile(r"domain/", r"core/", r"entities?/", r"business/"),
            "#ff6600", 2, (),
            "Business rules",
        ),
    ],
    indicators=[
        _folder(r"domain/", 10, required=True),
        _folder(r"use-?cases?/", 9),
        _folder(r"application/", 8),
        _folder(r"infrastructure/", 8),
        _folder(r"adapters?/", 7),
        _folder(r"entities?/", 6),
    ],
)

# ===================================================================
# Hexagonal (ports and adapters)
# ===================================================================

HEXAGONAL = ArchitecturePattern(
    name="Hexagonal",
    description="Ports and adapters around an isolated domain",
    flow_direction="outside-in",
    strict=True,
    layers=[
        ArchitectureLayer(
            "adapters-in",
            ("adapters/in", "adapters/primary", "driving", "inbound"),
            _compile(r"adapters?/in/", r"adapters?/primary/", r"driving/", r"inbound/", r"\.adapter\.(ts|js)$"),
            "#00ff88", 0, ("ports-in", "application"),
            "Inbound adapters: API, UI and CLI",
        ),
        ArchitectureLayer(
            "adapters-out",
            ("adapters/out", "adapters/secondary", "driven", "outbound"),
            _compile(r"adapters?/out/", r"adapters?/secondary/", r"driven/", r"outbound/"),
            "#888888", 0, ("ports-out", "domain"),
            "Outbound adapters: databases and external APIs",
        ),
        ArchitectureLayer(
            "ports-in",
            ("ports/in", "ports/primary", "ports/driving"),
            _compile(r"ports?/in/", r"ports?/primary/", r"\.port\.(ts|js)$"),
            "#00ccff", 1, ("domain",),
            "Inbound ports: use case interfaces",
        ),
        ArchitectureLayer(
            "ports-out",
            ("ports/out", "ports/secondary", "ports/driven"),
            _compile(r"ports?/out/", r"ports?/secondary/"),
            "#ffcc00", 1, ("domain",),
            "Outbound ports: repository interfaces",
        ),
        ArchitectureLayer(
            "application",
            ("application", "app", "usecases", "services"),
            _compile(r"application/", r"use-?cases?/"),
            "#ff00ff", 1, ("domain", "ports-out"),
            "Use case orchestration",
        ),
        ArchitectureLayer(
            "domain",
            ("domain", "core", "model"),
            _compile(r"domain/", r"core/", r"model/"),
            "#ff6600", 2, (),
            "Entities and business rules",
        ),
    ],
    indicators=[
        _folder(r"ports?/", 10, required=True),
        _folder(r"adapters?/", 10, required=True),
        _folder(r"domain/", 8, required=True),
        _file(r"\.port\.(ts|js)$", 7),
        _file(r"\.adapter\.(ts|js)$", 7),
    ],
)

# ===================================================================
# Domain-driven design
# ===================================================================

DDD = ArchitecturePattern(
    name="DDD",
    description="Domain-driven design",
    flow_direction="outside-in",
    strict=True,
    layers=[
        ArchitectureLayer(
            "interface",
            ("interface", "interfaces", "api", "presentation", "web"),
            _compile(r"interfaces?/", r"api/", r"presentation/", r"web/"),
            "#00ff88", 0, ("application", "domain"),
            "API and UI",
        ),
        ArchitectureLayer(
            "application",
            ("application", "app", "usecases", "services"),
            _compile(r"application/", r"app/", r"use-?cases?/"),
            "#00ccff", 1, ("domain", "infrastructure"),
            "Application services",
        ),
        ArchitectureLayer(
            "domain",
            ("domain", "core", "model"),
            _compile(r"domain/", r"core/"),
            "#ff6600", 2, (),
            "Entities, value objects and aggregates",
        ),
        ArchitectureLayer(
            "infrastructure",
            ("infrastructure", "infra", "persistence", "repositories"),
            _compile(r"infrastructure/", r"infra/", r"persistence/"),
            "#888888", 1, ("domain",),
            "Technical implementations",
        ),
    ],
    indicators=[
        _folder(r"domain/", 9, required=True),
        _folder(r"aggregates?/", 10),
        _folder(r"entities?/", 7),
        _folder(r"value-?objects?/", 10),
        _folder(r"repositories?/", 7),
        _file(r"\.aggregate\.(ts|js)$", 9),
        _file(r"\.entity\.(ts|js)$", 6),
        _file(r"\.value-?object\.(ts|js)$", 8),
    ],
)

# ===================================================================
# Model-View-Controller
# ===================================================================

MVC = ArchitecturePattern(
    name="MVC",
    description="Models, views and controllers",
    flow_direction="bidirectional",
    strict=False,
    layers=[
        ArchitectureLayer(
            "view",
            ("views", "view", "templates", "pages", "screens", "ui"),
            _compile(
                r"views?/", r"templates?/", r"pages?/", r"screens?/",
                r"\.view\.(ts|js|tsx|jsx)$", r"\.template\.(ts|js|html)$",
            ),
            "#00ff88", 0, ("controller", "model", "viewmodel"),
            "Presentation",
        ),
        ArchitectureLayer(
            "controller",
            ("controllers", "controller", "handlers", "actions"),
            _compile(r"controllers?/", r"handlers?/", r"actions?/", r"\.controller\.(ts|js)$", r"\.handler\.(ts|js)$"),
            "#00ccff", 1, ("model", "service"),
            "Request coordination",
        ),
        ArchitectureLayer(
            "model",
            ("models", "model", "entities", "domain"),
            _compile(r"models?/", r"entities?/", r"\.model\.(ts|js)$", r"\.entity\.(ts|js)$"),
            "#ff6600", 2, (),
            "Data models and entities",
        ),
        ArchitectureLayer(
            "service",
            ("services", "service", "providers"),
            _compile(r"services?/", r"providers?/", r"\.service\.(ts|js)$"),
            "#ff00ff", 1, ("model", "repository"),
            "Business logic",
        ),
    ],
    indicators=[
        _folder(r"controllers?/", 9, required=True),
        _folder(r"models?/", 8, required=True),
        _folder(r"views?/", 7),
        _file(r"\.controller\.(ts|js)$", 6),
        _file(r"\.model\.(ts|js)$", 5),
    ],
)

# ===================================================================
# Model-View-ViewModel
# ===================================================================

MVVM = ArchitecturePattern(
    name="MVVM",
    description="Views bound to view models",
    flow_direction="bidirectional",
    strict=False,
    layers=[
        ArchitectureLayer(
            "view",
            ("views", "view", "pages", "screens", "components"),
            _compile(r"views?/", r"pages?/", r"screens?/", r"\.view\.(ts|js|tsx|jsx)$"),
            "#00ff88", 0, ("viewmodel",),
            "User interface",
        ),
        ArchitectureLayer(
            "viewmodel",
            ("viewmodels", "viewmodel", "vm", "stores"),
            _compile(
                r"view-?models?/", r"vm/", r"stores?/",
                r"\.viewmodel\.(ts|js)$", r"\.vm\.(ts|js)$", r"\.store\.(ts|js)$",
            ),
            "#00ccff", 1, ("model", "service"),
            "Presentation state and logic",
        ),
        ArchitectureLayer(
            "model",
            ("models", "model", "entities", "domain"),
            _compile(r"models?/", r"entities?/", r"domain/", r"\.model\.(ts|js)$"),
            "#ff6600", 2, (),
            "Data and business logic",
        ),
        ArchitectureLayer(
            "service",
            ("services", "service", "api"),
            _compile(r"services?/", r"api/", r"\.service\.(ts|js)$"),
            "#ff00ff", 1, ("model",),
            "Data access",
        ),
    ],
    indicators=[
        _folder(r"view-?models?/", 10, required=True),
        _file(r"\.viewmodel\.(ts|js)$", 9),
        _file(r"\.vm\.(ts|js)$", 8),
        _folder(r"stores?/", 6),
        _folder(r"views?/", 5),
    ],
)

# ===================================================================
# Layered
# ===================================================================

LAYERED = ArchitecturePattern(
    name="Layered",
    description="Classic presentation, business and data tiers",
    flow_direction="top-down",
    strict=False,
    layers=[
        ArchitectureLayer(
            "presentation",
            ("presentation", "ui", "web", "api", "views"),
            _compile(r"presentation/", r"ui/", r"web/", r"views?/"),
            "#00ff88", 0, ("business", "service"),
            "Presentation tier",
        ),
        ArchitectureLayer(
            "business",
            ("business", "bll", "logic", "services"),
            _compile(r"business/", r"bll/", r"logic/", r"services?/"),
            "#00ccff", 1, ("data", "persistence"),
            "Business logic tier",
        ),
        ArchitectureLayer(
            "data",
            ("data", "dal", "persistence", "repositories", "db"),
            _compile(r"data/", r"dal/", r"persistence/", r"repositories?/", r"db/"),
            "#ff6600", 2, (),
            "Data access tier",
        ),
    ],
    indicators=[
        _folder(r"presentation/", 8),
        _folder(r"business/", 8),
        _folder(r"services?/", 6),
        _folder(r"(data|dal|persistence)/", 7),
        _folder(r"repositories?/", 6),
    ],
)

# ===================================================================
# Microservices
# ===================================================================

MICROSERVICES = ArchitecturePattern(
    name="Microservices",
    description="Independent services behind a gateway",
    flow_direction="bidirectional",
    strict=False,
    layers=[
        ArchitectureLayer(
            "gateway",
            ("gateway", "api-gateway", "proxy", "bff"),
            _compile(r"gateway/", r"api-gateway/", r"proxy/", r"bff/"),
            "#00ff88", 0, ("service",),
            "Single entry point",
        ),
        ArchitectureLayer(
            "service",
            ("services", "service", "microservices"),
            _compile(r"services?/", r"microservices?/", r"-service/"),
            "#00ccff", 1, ("shared", "common"),
            "Business services",
        ),
        ArchitectureLayer(
            "shared",
            ("shared", "common", "libs", "packages"),
            _compile(r"shared/", r"common/", r"libs?/", r"packages?/"),
            "#ff6600", 2, (),
            "Code shared between services",
        ),
    ],
    indicators=[
        _folder(r"services?/[^/]+/src/", 10),
        _folder(r"microservices?/", 9),
        _folder(r"gateway/", 8),
        _folder(r"api-gateway/", 8),
        _folder(r"(shared|common)/", 6),
        _file(r"docker-compose\.ya?ml$", 5),
    ],
)

# ===================================================================
# Feature based
# ===================================================================

FEATURE_BASED = ArchitecturePattern(
    name="Feature-Based",
    description="Modules organised by feature",
    flow_direction="bidirectional",
    strict=False,
    layers=[
        ArchitectureLayer(
            "feature",
            ("features", "feature", "modules", "module"),
            _compile(r"features?/", r"modules?/"),
            "#00ccff", 0, ("shared", "core"),
            "Feature modules",
        ),
        ArchitectureLayer(
            "shared",
            ("shared", "common", "lib"),
            _compile(r"shared/", r"common/", r"lib/"),
            "#ff6600", 1, ("core",),
            "Shared components",
        ),
        ArchitectureLayer(
            "core",
            ("core", "kernel", "base"),
            _compile(r"core/", r"kernel/", r"base/"),
            "#ff00ff", 2, (),
            "Application core",
        ),
    ],
    indicators=[
        _folder(r"features?/", 10, required=True),
        _folder(r"modules?/", 8),
        _folder(r"(shared|common)/", 6),
        _folder(r"core/", 5),
    ],
)

ALL_PATTERNS: List[ArchitecturePattern] = [
    CLEAN_ARCHITECTURE,
    HEXAGONAL,
    DDD,
    MVC,
    MVVM,
    LAYERED,
    MICROSERVICES,
    FEATURE_BASED,
]


def get_pattern(name: str) -> Optional[ArchitecturePattern]:
    """Look up a pattern by name, ignoring case."""
    lowered = name.lower()
    return next((p for p in ALL_PATTERNS if p.name.lower() == lowered), None)
