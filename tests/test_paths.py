from pathlib import Path

import pytest

from bollard.errors import PathEscapeError
from bollard.paths import SitePaths, combine, relative_url


def test_combine_appends_relative_segments():
    assert combine("/blog", "post.html") == "/blog/post.html"
    assert combine("/blog/2024", "./march/post.html") == "/blog/2024/march/post.html"


def test_combine_dot_dot_pops_and_clamps_at_root():
    assert combine("/blog/2024", "../about.html") == "/blog/about.html"
    assert combine("/a", "../../../x") == "/x"
    assert combine("/a/b", "..") == "/a"


def test_combine_absolute_sub_path_resets_to_root():
    assert combine("/blog", "/images/logo.png") == "/images/logo.png"
    assert combine("/blog", "x//y") == "/y"


def test_combine_ignores_trailing_separators_and_accepts_backslashes():
    assert combine("/blog/", "post.html") == "/blog/post.html"
    assert combine("/blog", "2024/") == "/blog/2024"
    assert combine("/blog", "a\\b.txt") == "/blog/a/b.txt"


def test_combine_root_cases():
    assert combine("/", "x") == "/x"
    assert combine("/a", "") == "/a"
    assert combine("", "") == "/"
    assert combine("/a/b", "/") == "/"


def test_combine_is_a_static_method_too():
    assert SitePaths.combine("/a", "b") == "/a/b"


def test_relative_url():
    assert relative_url("/blog/post.html", "/images/a.jpg") == "../images/a.jpg"
    assert relative_url("/index.html", "/images/a.jpg") == "images/a.jpg"
    assert relative_url("/blog/post.html", "/blog/other.html") == "other.html"
    assert relative_url("/a/b/c.html", "/a/d/e.html") == "../d/e.html"


def test_source_and_dest_paths_stay_inside_roots(tmp_path):
    paths = SitePaths(tmp_path / "src", tmp_path / "out")
    assert paths.source_path("/blog/post.md") == tmp_path / "src" / "blog" / "post.md"
    assert paths.dest_path("/blog/post.html") == tmp_path / "out" / "blog" / "post.html"
    assert paths.dest_path("blog/../x.html") == tmp_path / "out" / "x.html"


@pytest.mark.parametrize("site_path", ["/../secret.txt", "/a/../../b", "/", ""])
def test_escaping_paths_are_rejected(tmp_path, site_path):
    paths = SitePaths(tmp_path / "src", tmp_path / "out")
    with pytest.raises(PathEscapeError):
        paths.dest_path(site_path)
    with pytest.raises(PathEscapeError):
        paths.source_path(site_path)


def test_dest_path_of_output_sibling_is_rejected(tmp_path):
    # "/../out2" must not pass a naive prefix check against ".../out"
    paths = SitePaths(tmp_path / "src", tmp_path / "out")
    with pytest.raises(PathEscapeError):
        paths.dest_path("/../out2/x.html")


def test_site_relative_of_inverts_dest_path(tmp_path):
    paths = SitePaths(tmp_path / "src", tmp_path / "out")
    for site_path in ["/index.html", "/blog/2024/post.html"]:
        assert paths.site_relative_of(paths.dest_path(site_path)) == site_path


def test_site_relative_of_rejects_outside_paths(tmp_path):
    paths = SitePaths(tmp_path / "src", tmp_path / "out")
    with pytest.raises(PathEscapeError):
        paths.site_relative_of(tmp_path / "src" / "index.html")
    with pytest.raises(PathEscapeError):
        paths.site_relative_of(Path(tmp_path / "out"))
