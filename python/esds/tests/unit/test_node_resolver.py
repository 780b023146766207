# Copyright Rand Arete @ Ananke 2025
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""Unit tests for the node-style specifier resolver.

Tests for NodeModuleResolver including:
- package.json parsing and entry point selection
- Relative specifiers with extension and index lookup
- Bare, scoped and subpath package specifiers
- Failure reporting (not found, invalid entry, built-ins)
"""

import pytest

from esds.resolvers import (
    NodeModuleResolver,
    PackageJson,
    ResolutionFailure,
    ResolutionStatus,
    get_package_name,
    is_builtin,
    is_path_specifier,
    parse_package_json,
    select_entry_point,
)


@pytest.fixture
def resolver():
    return NodeModuleResolver()


# ===========================================================================
# Specifier Classification Tests
# ===========================================================================


class TestSpecifierClassification:
    """Tests for the specifier helper functions."""

    @pytest.mark.parametrize("specifier", ["./a", "../a", "/a", ".", ".."])
    def test_path_specifiers(self, specifier):
        assert is_path_specifier(specifier)

    @pytest.mark.parametrize("specifier", ["lit", "@scope/pkg", ".hidden", "a/./b"])
    def test_bare_specifiers(self, specifier):
        assert not is_path_specifier(specifier)

    def test_package_name_plain(self):
        assert get_package_name("lit-element") == "lit-element"

    def test_package_name_subpath(self):
        assert get_package_name("lodash-es/debounce.js") == "lodash-es"

    def test_package_name_scoped(self):
        assert get_package_name("@material/mwc-button/mwc-button.js") == "@material/mwc-button"

    def test_builtins(self):
        assert is_builtin("fs")
        assert is_builtin("fs/promises")
        assert is_builtin("node:path")
        assert not is_builtin("lit-element")


# ===========================================================================
# Package.json Tests
# ===========================================================================


class TestPackageJson:
    """Tests for manifest parsing and entry point selection."""

    def test_parse_entry_fields(self, tmp_path):
        manifest = tmp_path / "package.json"
        manifest.write_text(
            '{"name": "pkg", "version": "2.0.0", "main": "a.js", "module": "b.js", "jsnext:main": "c.js"}'
        )
        pkg = parse_package_json(manifest)
        assert pkg == PackageJson(name="pkg", version="2.0.0", main="a.js", module="b.js", jsnext="c.js")

    def test_jsnext_field_wins_over_jsnext_main(self, tmp_path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"jsnext": "new.js", "jsnext:main": "old.js"}')
        assert parse_package_json(manifest).jsnext == "new.js"

    def test_missing_manifest(self, tmp_path):
        assert parse_package_json(tmp_path / "package.json") is None

    def test_invalid_json(self, tmp_path):
        manifest = tmp_path / "package.json"
        manifest.write_text("{not json")
        assert parse_package_json(manifest) is None

    def test_non_string_entry_ignored(self, tmp_path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"main": "index.js", "module": {"import": "x.js"}}')
        pkg = parse_package_json(manifest)
        assert pkg.module is None
        assert select_entry_point(pkg) == "index.js"

    def test_module_preferred_over_main(self):
        assert select_entry_point(PackageJson(main="cjs.js", module="esm.js")) == "esm.js"

    def test_jsnext_preferred_over_main(self):
        assert select_entry_point(PackageJson(main="cjs.js", jsnext="next.js")) == "next.js"

    def test_module_preferred_over_jsnext(self):
        pkg = PackageJson(main="cjs.js", module="esm.js", jsnext="next.js")
        assert select_entry_point(pkg) == "esm.js"

    def test_main_fallback(self):
        assert select_entry_point(PackageJson(main="cjs.js")) == "cjs.js"

    def test_no_entry(self):
        assert select_entry_point(PackageJson()) is None
        assert select_entry_point(None) is None


# ===========================================================================
# Relative Resolution Tests
# ===========================================================================


class TestRelativeResolution:
    """Tests for ./ and ../ specifiers."""

    def test_exact_file(self, project, resolver):
        project.write("src/util.js")
        result = resolver.resolve("./util.js", project.root / "src")
        assert result.status == ResolutionStatus.RESOLVED
        assert result.relative_path == "util.js"

    def test_extension_added(self, project, resolver):
        project.write("src/util.mjs")
        result = resolver.resolve("./util", project.root / "src")
        assert result.relative_path == "util.mjs"

    def test_js_extension_tried_first(self, project, resolver):
        project.write("src/util.js")
        project.write("src/util.mjs")
        assert resolver.resolve("./util", project.root / "src").relative_path == "util.js"

    def test_parent_directory(self, project, resolver):
        project.write("lib/shared.js")
        result = resolver.resolve("../lib/shared.js", project.root / "src")
        assert result.relative_path == "../lib/shared.js"

    def test_directory_index(self, project, resolver):
        project.write("src/components/index.js")
        result = resolver.resolve("./components", project.root / "src")
        assert result.relative_path == "components/index.js"

    def test_directory_with_manifest(self, project, resolver):
        project.write("src/widget/package.json", '{"module": "widget.esm.js"}')
        project.write("src/widget/widget.esm.js")
        result = resolver.resolve("./widget", project.root / "src")
        assert result.relative_path == "widget/widget.esm.js"

    def test_resolve_from_file(self, project, resolver):
        project.write("src/a.js")
        importer = project.write("src/b.js")
        assert resolver.resolve_from_file("./a.js", importer).relative_path == "a.js"

    def test_missing_relative(self, project, resolver):
        result = resolver.resolve("./nope", project.root)
        assert not result.success
        assert result.failure == ResolutionFailure.NOT_FOUND
        assert "./nope" in result.error


# ===========================================================================
# Package Resolution Tests
# ===========================================================================


class TestPackageResolution:
    """Tests for bare specifiers found in node_modules."""

    def test_module_field(self, project, resolver):
        project.package(
            "some-pkg",
            {"main": "dist/cjs/index.js", "module": "dist/esm/index.js"},
            {"dist/cjs/index.js": "", "dist/esm/index.js": ""},
        )
        result = resolver.resolve("some-pkg", project.root)
        assert result.relative_path == "node_modules/some-pkg/dist/esm/index.js"
        assert result.module.package_name == "some-pkg"

    def test_jsnext_field(self, project, resolver):
        project.package(
            "legacy",
            {"main": "legacy.cjs.js", "jsnext:main": "legacy.es.js"},
            {"legacy.cjs.js": "", "legacy.es.js": ""},
        )
        result = resolver.resolve("legacy", project.root)
        assert result.relative_path == "node_modules/legacy/legacy.es.js"

    def test_main_field(self, project, resolver):
        project.package("plain", {"main": "lib/plain"}, {"lib/plain.js": ""})
        result = resolver.resolve("plain", project.root)
        assert result.relative_path == "node_modules/plain/lib/plain.js"

    def test_index_without_manifest(self, project, resolver):
        project.package("bare", None, {"index.js": ""})
        assert resolver.resolve("bare", project.root).relative_path == "node_modules/bare/index.js"

    def test_index_without_entry_fields(self, project, resolver):
        project.package("nameonly", {"name": "nameonly"}, {"index.js": ""})
        assert resolver.resolve("nameonly", project.root).relative_path == "node_modules/nameonly/index.js"

    def test_scoped_package(self, project, resolver):
        project.package("@org/ui", {"module": "ui.js"}, {"ui.js": ""})
        result = resolver.resolve("@org/ui", project.root / "src")
        assert result.relative_path == "../node_modules/@org/ui/ui.js"
        assert result.module.package_name == "@org/ui"

    def test_subpath(self, project, resolver):
        project.package("lodash-es", {"module": "lodash.js"}, {"lodash.js": "", "debounce.js": ""})
        result = resolver.resolve("lodash-es/debounce", project.root)
        assert result.relative_path == "node_modules/lodash-es/debounce.js"

    def test_nearest_node_modules_wins(self, project, resolver):
        project.package("dup", None, {"index.js": ""})
        project.write("packages/app/node_modules/dup/index.js")
        result = resolver.resolve("dup", project.root / "packages" / "app" / "src")
        assert result.relative_path == "../node_modules/dup/index.js"

    def test_found_in_ancestor(self, project, resolver):
        project.package("far", None, {"index.js": ""})
        result = resolver.resolve("far", project.root / "a" / "b" / "c")
        assert result.relative_path == "../../../node_modules/far/index.js"

    def test_import_between_packages(self, project, resolver):
        dependent = project.package("dependent", {"module": "index.js"}, {"index.js": ""})
        project.package("dependency", {"module": "esm.js"}, {"esm.js": ""})
        result = resolver.resolve("dependency", dependent)
        assert result.relative_path == "../dependency/esm.js"

    def test_forward_slashes(self, project, resolver):
        project.package("deep", {"module": "a/b/c.js"}, {"a/b/c.js": ""})
        assert "\\" not in resolver.resolve("deep", project.root).relative_path

    def test_not_found(self, project, resolver):
        result = resolver.resolve("does-not-exist", project.root / "src")
        assert result.status == ResolutionStatus.FAILED
        assert result.module is None
        assert "does-not-exist" in result.error
        assert any("node_modules" in location for location in result.searched)

    def test_missing_entry_is_error(self, project, resolver):
        project.package("broken", {"module": "missing.js"}, {"index.js": ""})
        result = resolver.resolve("broken", project.root)
        assert not result.success
        assert result.failure == ResolutionFailure.INVALID_ENTRY
        assert "missing.js" in result.error

    def test_builtin_is_error(self, project, resolver):
        result = resolver.resolve("fs", project.root)
        assert result.failure == ResolutionFailure.BUILTIN

    def test_node_scheme_is_builtin_even_when_installed(self, project, resolver):
        project.package("path", {"main": "path.js"}, {"path.js": ""})
        result = resolver.resolve("node:path", project.root)
        assert result.failure == ResolutionFailure.BUILTIN

    @pytest.mark.parametrize("name", ["events", "buffer", "util"])
    def test_installed_polyfill_shadows_builtin(self, project, resolver, name):
        project.package(name, {"main": f"{name}.js"}, {f"{name}.js": ""})
        result = resolver.resolve(name, project.root)
        assert result.success
        assert result.relative_path == f"node_modules/{name}/{name}.js"

    def test_missing_builtin_reports_search(self, project, resolver):
        result = resolver.resolve("events", project.root / "src")
        assert result.failure == ResolutionFailure.BUILTIN
        assert any("node_modules" in location for location in result.searched)

    def test_empty_specifier(self, project, resolver):
        assert not resolver.resolve("", project.root).success

