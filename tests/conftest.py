"""Pytest configuration and fixtures for polygraph tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, Optional

import pytest

from polygraph.config import AnalyzerConfig
from polygraph.graph_builder import CodeGraph, GraphBuilder
from polygraph.models import CodeNode
from polygraph.parser import parse_source


@pytest.fixture(autouse=True)
def _isolated_user_config(tmp_path_factory, monkeypatch):
    """Point the user config at an empty location so a developer's own
    ``~/.polygraph/config.toml`` never leaks into test runs."""
    home = tmp_path_factory.mktemp("polygraph_home")
    monkeypatch.setattr("polygraph.config.BASE_DIR", home)
    monkeypatch.setattr("polygraph.config.CONFIG_FILE", home / "config.toml")
    monkeypatch.setattr("polygraph.config_manager.CONFIG_FILE", home / "config.toml")
    monkeypatch.delenv("POLYGRAPH_MAX_WORKERS", raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the multi-language sample project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def write_project(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative path: content}`` under a fresh project directory."""

    def _write(files: Dict[str, str]) -> Path:
        root = temp_dir / "project"
        for relative, content in files.items():
            target = root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root

    return _write


@pytest.fixture
def build_graph() -> Callable[..., CodeGraph]:
    """Parse in-memory sources and build their code graph."""

    def _build(files: Dict[str, str], config: Optional[AnalyzerConfig] = None) -> CodeGraph:
        config = config or AnalyzerConfig()
        infos = [
            parse_source(path, content, layer=config.detect_layer(path))
            for path, content in files.items()
        ]
        return GraphBuilder("demo", "/demo", config).build(infos)

    return _build


@pytest.fixture
def find_node() -> Callable[[CodeGraph, str], CodeNode]:
    """Look up the single node with a given full path."""

    def _find(graph: CodeGraph, full_path: str) -> CodeNode:
        matches = [node for node in graph.nodes if node.full_path == full_path]
        assert len(matches) == 1, f"expected one node for {full_path}, got {len(matches)}"
        return matches[0]

    return _find


@pytest.fixture
def sample_python_code() -> str:
    """Sample Python code for testing the parser."""
    return '''"""Sample module for testing."""

import os
from typing import List, Optional

DEFAULT_NAME = "world"


def hello(name: str = DEFAULT_NAME) -> str:
    """Say hello."""
    return f"Hello, {name}!"


class Calculator(Base, Mixin):
    """Simple calculator."""

    precision: int = 2

    def __init__(self, start: int = 0):
        self.total = start

    def add(self, a: int, b: int) -> int:
        """Add two numbers."""
        return a + b

    def multiply(self, a: int, b: int) -> int:
        """Multiply two numbers."""
        result = self.add(a, 0)
        for _ in range(b - 1):
            if result > 100 and a > 1:
                raise ValueError("too big")
            result = self.add(result, a)
        return result
'''


@pytest.fixture
def sample_typescript_code() -> str:
    """Sample TypeScript code for testing the parser."""
    return '''import { readFile } from "fs";
import * as path from "path";
import React, { useState } from "react";

/** A greeting service. */
export class Greeter extends Base implements Speaker, Logger {
  private prefix: string = "Hello";
  static count = 0;

  constructor(private readonly name: string) {
    super();
  }

  public greet(target?: string): string {
    if (target && target.length > 0) {
      return `${this.prefix} ${target}`;
    }
    return this.prefix;
  }

  protected async load(): Promise<void> {
    await this.fetchData();
  }
}

export interface Speaker {
  speak(): void;
}

export type Id = string | number;

enum Color {
  Red,
  Green = "green",
}

export const double = (x: number): number => x * 2;

export async function main(): Promise<void> {
  const g = new Greeter("world");
  g.greet();
}

function helper() {
  return 1;
}

const LIMIT = 10;
'''


@pytest.fixture
def sample_rust_code() -> str:
    """Sample Rust code for testing the parser."""
    return '''use std::collections::HashMap;
use crate::models::{User, Role as R};

/// Application state.
#[derive(Debug, Clone)]
pub struct AppState {
    pub users: HashMap<String, User>,
    count: usize,
}

pub enum Status {
    Active,
    Disabled = 2,
}

pub trait Store {
    fn save(&self, user: &User) -> bool;
    fn load(&self) -> Option<User> {
        None
    }
}

impl AppState {
    pub fn new() -> Self {
        AppState { users: HashMap::new(), count: 0 }
    }

    pub async fn add(&mut self, user: User) -> Result<(), String> {
        if self.count > 10 {
            return Err(String::from("full"));
        }
        self.count += 1;
        Ok(())
    }
}

impl Store for AppState {
    fn save(&self, user: &User) -> bool {
        true
    }
}

pub const MAX_USERS: usize = 100;
static mut COUNTER: u32 = 0;

fn helper(x: i32) -> i32 {
    x + 1
}
'''
