"""Tests for graph construction, edge resolution and metrics."""

import pytest

from polygraph.graph_builder import GraphBuilder, ImportResolver, module_path
from polygraph.models import (
    FileInfo,
    FunctionInfo,
    GranularityLevel,
    ImportInfo,
    Language,
    NodeType,
    RelationType,
)


MODELS_TS = """export class Base {}

export class User extends Base {
  constructor(public name: string) {
    super();
  }

  rename(value: string): void {
    this.name = value;
  }
}
"""

APP_TS = """import { User } from "./models";

export function createUser(name: string): User {
  const user = new User(name);
  user.rename(name);
  return user;
}
"""


@pytest.fixture
def ts_graph(build_graph):
    return build_graph({"src/models.ts": MODELS_TS, "src/app.ts": APP_TS})


def _edges(graph, relation):
    return [(e.source, e.target) for e in graph.edges if e.type == relation]


class TestNodes:
    """Node creation across the granularity levels."""

    def test_system_module_and_file_ids(self, ts_graph):
        """Ids encode level, file, line and full path."""
        system = ts_graph.nodes[0]
        assert system.id == "L1:demo"
        assert system.level == GranularityLevel.L1_SYSTEM

        module = ts_graph.node("L2:src")
        assert module is not None
        assert module.parent == "L1:demo"

        app = ts_graph.node("L3:src/app.ts:1:src.app")
        assert app is not None
        assert app.type == NodeType.FILE
        assert app.name == "app.ts"
        assert app.parent == "L2:src"
        assert ts_graph.file_nodes["src/app.ts"] == app.id

    def test_types_functions_and_variables(self, ts_graph, find_node):
        """Classes, their members and parameters become nested nodes."""
        user = find_node(ts_graph, "src.models.User")
        assert user.id == "L4:src/models.ts:3:src.models.User"
        assert user.type == NodeType.CLASS

        rename = find_node(ts_graph, "src.models.User.rename")
        assert rename.type == NodeType.METHOD
        assert rename.parent == user.id
        assert rename.signature == "rename(value: string) -> void"

        constructor = find_node(ts_graph, "src.models.User.constructor")
        assert constructor.type == NodeType.CONSTRUCTOR

        attribute = find_node(ts_graph, "src.models.User.name")
        assert attribute.type == NodeType.ATTRIBUTE
        assert attribute.level == GranularityLevel.L7_VARIABLE

        param = find_node(ts_graph, "src.app.createUser.name")
        assert param.type == NodeType.PARAMETER
        assert param.data_type == "string"

    def test_children_mirror_parents(self, ts_graph):
        """Every node with a parent is listed among that parent's children."""
        for node in ts_graph.nodes:
            if node.parent is not None:
                assert node.id in ts_graph.node(node.parent).children

    def test_root_level_file_hangs_off_system(self, build_graph):
        """Files outside any directory belong directly to the system node."""
        graph = build_graph({"main.py": "def run():\n    pass\n"})
        file_node = graph.node("L3:main.py:1:main")
        assert file_node.parent == "L1:demo"
        assert not any(n.level == GranularityLevel.L2_MODULE for n in graph.nodes)

    def test_duplicate_ids_get_a_suffix(self):
        """Colliding ids are disambiguated with ``#2``, ``#3``..."""
        info = FileInfo(
            path="a.py",
            language=Language.PYTHON,
            line_count=2,
            functions=[FunctionInfo("f", "function", 1, 2), FunctionInfo("f", "function", 1, 2)],
        )
        graph = GraphBuilder("demo").build([info])
        ids = [n.id for n in graph.nodes if n.level == GranularityLevel.L5_FUNCTION]
        assert ids == ["L5:a.py:1:a.f", "L5:a.py:1:a.f#2"]


class TestEdges:
    """Edge derivation from imports, calls, types and containment."""

    def test_containment_in_both_directions(self, ts_graph, find_node):
        """CONTAINS and CONTAINED_BY are created for each parent link."""
        user = find_node(ts_graph, "src.models.User")
        file_id = ts_graph.file_nodes["src/models.ts"]
        assert (file_id, user.id) in _edges(ts_graph, RelationType.CONTAINS)
        assert (user.id, file_id) in _edges(ts_graph, RelationType.CONTAINED_BY)

    def test_import_edge_between_files(self, ts_graph):
        """Relative imports link the two file nodes."""
        imports = ts_graph.edges_of_type(RelationType.IMPORTS)
        assert len(imports) == 1
        assert imports[0].source == ts_graph.file_nodes["src/app.ts"]
        assert imports[0].target == ts_graph.file_nodes["src/models.ts"]
        assert imports[0].label == "./models"
        assert ts_graph.file_imports["src/app.ts"] == ["src/models.ts"]
        assert ts_graph.imported_names["src/app.ts"] == {"User": ["src/models.ts"]}

    def test_instantiation_call_and_return_type(self, ts_graph, find_node):
        """``new User`` instantiates; ``user.rename`` calls; the return type links the class."""
        create = find_node(ts_graph, "src.app.createUser")
        user = find_node(ts_graph, "src.models.User")
        rename = find_node(ts_graph, "src.models.User.rename")

        assert (create.id, user.id) in _edges(ts_graph, RelationType.INSTANTIATES)
        assert (create.id, rename.id) in _edges(ts_graph, RelationType.CALLS)
        assert (create.id, user.id) in _edges(ts_graph, RelationType.RETURNS_TYPE)

        call = next(
            e for e in ts_graph.edges
            if e.type == RelationType.CALLS and e.source == create.id
        )
        assert call.call_sites == [5]

    def test_extends_edge(self, ts_graph, find_node):
        """``extends`` resolves to the base class node."""
        user = find_node(ts_graph, "src.models.User")
        base = find_node(ts_graph, "src.models.Base")
        assert _edges(ts_graph, RelationType.EXTENDS) == [(user.id, base.id)]

    def test_edge_ids_are_sequential(self, ts_graph):
        """Edge ids count up in creation order."""
        assert [e.id for e in ts_graph.edges] == [f"edge-{i}" for i in range(1, len(ts_graph.edges) + 1)]

    def test_build_is_deterministic(self, build_graph):
        """Input order does not change ids or edges."""
        first = build_graph({"src/models.ts": MODELS_TS, "src/app.ts": APP_TS})
        second = build_graph({"src/app.ts": APP_TS, "src/models.ts": MODELS_TS})
        assert [n.id for n in first.nodes] == [n.id for n in second.nodes]
        assert [(e.id, e.source, e.target, e.type) for e in first.edges] == [
            (e.id, e.source, e.target, e.type) for e in second.edges
        ]

    def test_python_relative_import_and_call(self, build_graph, find_node):
        """``from .b import helper`` links files and resolves the call."""
        graph = build_graph({
            "pkg/a.py": "from .b import helper\n\n\ndef run():\n    return helper()\n",
            "pkg/b.py": "def helper():\n    return 1\n",
        })
        run = find_node(graph, "pkg.a.run")
        helper = find_node(graph, "pkg.b.helper")
        assert (graph.file_nodes["pkg/a.py"], graph.file_nodes["pkg/b.py"]) in _edges(graph, RelationType.IMPORTS)
        assert (run.id, helper.id) in _edges(graph, RelationType.CALLS)

    def test_rust_modules_and_associated_calls(self, build_graph, find_node):
        """``mod`` and ``use crate::`` link files; ``Type::new`` resolves to the method."""
        graph = build_graph({
            "src/main.rs": (
                "mod db;\n\nuse crate::db::Database;\n\nfn main() {\n"
                "    let database = Database::new(\"app.db\");\n    database.connect();\n}\n"
            ),
            "src/db.rs": (
                "pub struct Database {\n    path: String,\n}\n\nimpl Database {\n"
                "    pub fn new(path: &str) -> Self {\n        Database { path: path.to_string() }\n    }\n\n"
                "    pub fn connect(&self) -> bool {\n        true\n    }\n}\n"
            ),
        })
        main = find_node(graph, "src::main::main")
        new = find_node(graph, "src::db::Database::new")
        connect = find_node(graph, "src::db::Database::connect")

        assert _edges(graph, RelationType.IMPORTS) == [
            (graph.file_nodes["src/main.rs"], graph.file_nodes["src/db.rs"])
        ]
        calls = _edges(graph, RelationType.CALLS)
        assert (main.id, new.id) in calls
        assert (main.id, connect.id) in calls

    def test_rust_impl_in_another_file(self, build_graph, find_node):
        """Methods of an ``impl`` block attach to the type declared elsewhere."""
        graph = build_graph({
            "src/model.rs": "pub struct Store {\n    items: Vec<String>,\n}\n",
            "src/store_impl.rs": (
                "use crate::model::Store;\n\nimpl Store {\n"
                "    pub fn count(&self) -> usize {\n        self.items.len()\n    }\n}\n"
            ),
        })
        store = find_node(graph, "src::model::Store")
        count = find_node(graph, "src::model::Store::count")
        assert count.parent == store.id
        assert count.location.file == "src/store_impl.rs"


class TestMetrics:
    """Metrics computed from the finished graph."""

    def test_loc_rollup(self, ts_graph, find_node):
        """Functions span their lines; modules and the system sum their files."""
        create = find_node(ts_graph, "src.app.createUser")
        assert create.metrics.loc == 5
        assert create.metrics.complexity == 1
        assert ts_graph.node("L3:src/app.ts:1:src.app").metrics.loc == 7
        assert ts_graph.node("L2:src").metrics.loc == 18
        assert ts_graph.node("L1:demo").metrics.loc == 18

    def test_containment_is_not_a_dependency(self, ts_graph, find_node):
        """Only non-containment edges count as dependencies."""
        create = find_node(ts_graph, "src.app.createUser")
        assert create.metrics.dependencies == 3
        user = find_node(ts_graph, "src.models.User")
        # instantiated by and returned from createUser
        assert user.metrics.dependents == 2


class TestImportResolver:
    """Path probing for each language."""

    @pytest.fixture
    def resolver(self):
        return ImportResolver([
            "src/app.ts",
            "src/lib/api.ts",
            "src/components/index.tsx",
            "sidecar/pkg/__init__.py",
            "sidecar/pkg/tasks.py",
        ])

    def test_script_relative_and_index(self, resolver):
        info = FileInfo(path="src/app.ts", language=Language.TYPESCRIPT)
        assert resolver.resolve(info, ImportInfo("./lib/api", [], 1)) == ["src/lib/api.ts"]
        assert resolver.resolve(info, ImportInfo("./components", [], 1)) == ["src/components/index.tsx"]

    def test_script_alias(self, resolver):
        """``@/`` maps to ``src/``."""
        info = FileInfo(path="src/app.ts", language=Language.TYPESCRIPT)
        assert resolver.resolve(info, ImportInfo("@/lib/api", [], 1)) == ["src/lib/api.ts"]

    def test_external_packages_do_not_resolve(self, resolver):
        info = FileInfo(path="src/app.ts", language=Language.TYPESCRIPT)
        assert resolver.resolve(info, ImportInfo("react", ["useState"], 1)) == []
        rust = FileInfo(path="src-tauri/src/main.rs", language=Language.RUST)
        assert resolver.resolve(rust, ImportInfo("std::collections", ["HashMap"], 1)) == []

    def test_python_package_and_submodule(self, resolver):
        """A package resolves to ``__init__.py``; imported names may be submodules."""
        info = FileInfo(path="sidecar/main.py", language=Language.PYTHON)
        assert resolver.resolve(info, ImportInfo("pkg", ["tasks"], 1)) == [
            "sidecar/pkg/__init__.py",
            "sidecar/pkg/tasks.py",
        ]


def test_module_path():
    """Module paths use ``.`` except for Rust, and drop ``__init__``."""
    assert module_path("src/app/main.py", Language.PYTHON) == "src.app.main"
    assert module_path("pkg/__init__.py", Language.PYTHON) == "pkg"
    assert module_path("src/db.rs", Language.RUST) == "src::db"
    assert module_path("src/App.tsx", Language.TYPESCRIPT) == "src.App"
