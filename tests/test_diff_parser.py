import pytest

from push_digest.diff_parser import (
    DiffToken,
    _FileChangeBuilder,
    parse_commit_diff,
    parse_diff_header,
    split_file_diffs,
    tokenize_file_diff,
    unquote_path,
)
from push_digest.errors import MalformedHunkError, UnrecognizedDiffHeaderError


def test_parse_simple_modify():
    raw = """\

diff --git a/foo.py b/foo.py
index 1234567..89abcde 100644
--- a/foo.py
+++ b/foo.py
@@ -1,3 +1,3 @@ def foo():
-a = 1
+a = 2
 b = 3
 c = 4
"""
    files = parse_commit_diff(raw, "B")
    assert len(files) == 1
    file = files[0]
    assert file.status == "modified"
    assert file.old_path == "foo.py"
    assert file.new_path == "foo.py"
    assert file.old_blob == "1234567"
    assert file.new_blob == "89abcde"
    assert not file.is_binary
    assert file.added_lines == 1
    assert file.deleted_lines == 1

    hunk = file.hunks[0]
    assert (hunk.old_start, hunk.new_start) == (1, 1)
    assert [(c.kind, c.old_lineno, c.new_lineno) for c in hunk.changes] == [
        ("deleted", 1, None),
        ("added", None, 1),
        ("context", 2, 2),
        ("context", 3, 3),
    ]
    assert hunk.changes[0].text == "a = 1"


def test_hunk_header_resets_line_counters():
    raw = """\
diff --git a/foo.py b/foo.py
--- a/foo.py
+++ b/foo.py
@@ -1,2 +1,3 @@
 x
+y
 z
@@ -40,3 +41,2 @@
 p
-q
 r
"""
    file = parse_commit_diff(raw)[0]
    assert len(file.hunks) == 2
    second = file.hunks[1]
    assert [(c.kind, c.old_lineno, c.new_lineno) for c in second.changes] == [
        ("context", 40, 41),
        ("deleted", 41, None),
        ("context", 42, 42),
    ]


def test_parse_add_and_delete_files():
    raw = """\
diff --git a/new.txt b/new.txt
new file mode 100644
index 0000000..ce01362
--- /dev/null
+++ b/new.txt
@@ -0,0 +1,2 @@
+hello
+world
diff --git a/old.txt b/old.txt
deleted file mode 100644
index ce01362..0000000
--- a/old.txt
+++ /dev/null
@@ -1,2 +0,0 @@
-bye
-world
"""
    added, deleted = parse_commit_diff(raw)

    assert added.status == "added"
    assert added.new_file_mode == "100644"
    assert added.old_path is None
    assert added.new_path == "new.txt"
    assert added.added_lines == 2

    assert deleted.status == "deleted"
    assert deleted.deleted_file_mode == "100644"
    assert deleted.old_path == "old.txt"
    assert deleted.new_path is None
    assert deleted.path == "old.txt"
    assert deleted.deleted_lines == 2


def test_dev_null_alone_decides_added_status():
    raw = """\
diff --git a/n.txt b/n.txt
--- /dev/null
+++ b/n.txt
@@ -0,0 +1 @@
+only
"""
    file = parse_commit_diff(raw)[0]
    assert file.status == "added"
    assert file.hunks[0].changes[0].new_lineno == 1


def test_full_similarity_rename_has_no_hunks():
    raw = """\
diff --git a/old name.txt b/new name.txt
similarity index 100%
rename from old name.txt
rename to new name.txt
"""
    file = parse_commit_diff(raw)[0]
    assert file.status == "renamed"
    assert file.similarity_percent == 100
    assert file.old_path == "old name.txt"
    assert file.new_path == "new name.txt"
    assert file.hunks == []


def test_partial_copy_keeps_hunks():
    raw = """\
diff --git a/src/a.c b/src/b.c
similarity index 90%
copy from src/a.c
copy to src/b.c
index 1111111..2222222 100644
--- a/src/a.c
+++ b/src/b.c
@@ -1,2 +1,2 @@
-int a;
+int b;
 int c;
"""
    file = parse_commit_diff(raw)[0]
    assert file.status == "copied"
    assert file.similarity_percent == 90
    assert (file.old_path, file.new_path) == ("src/a.c", "src/b.c")
    assert len(file.hunks) == 1


def test_binary_files():
    raw = """\
diff --git a/logo.png b/logo.png
new file mode 100644
index 0000000..aaaaaaa
Binary files /dev/null and b/logo.png differ
diff --git a/icon.png b/icon.png
index bbbbbbb..ccccccc 100644
Binary files a/icon.png and b/icon.png differ
"""
    added, modified = parse_commit_diff(raw)
    assert added.is_binary and added.status == "added"
    assert modified.is_binary and modified.status == "modified"
    assert modified.hunks == []


def test_mode_change_and_type_change():
    raw = """\
diff --git a/run.sh b/run.sh
old mode 100644
new mode 100755
diff --git a/link b/link
old mode 100644
new mode 120000
"""
    mode_only, type_change = parse_commit_diff(raw)
    assert mode_only.status == "modified"
    assert mode_only.mode_changed
    assert (mode_only.old_mode, mode_only.new_mode) == ("100644", "100755")
    assert type_change.status == "type-changed"


def test_quoted_paths_are_unescaped():
    raw = """\
diff --git "a/h\\303\\251llo\\tworld.txt" "b/h\\303\\251llo\\tworld.txt"
new file mode 100644
--- /dev/null
+++ "b/h\\303\\251llo\\tworld.txt"
@@ -0,0 +1 @@
+bonjour
"""
    file = parse_commit_diff(raw)[0]
    assert file.new_path == "héllo\tworld.txt"


def test_unquote_path():
    assert unquote_path("plain.txt") == "plain.txt"
    assert unquote_path('"a\\"b\\\\c"') == 'a"b\\c'
    assert unquote_path('"\\346\\227\\245.txt"') == "日.txt"


def test_diff_header_with_spaces():
    assert parse_diff_header("diff --git a/hello.txt b/hello.txt") == ("hello.txt", "hello.txt")
    assert parse_diff_header("diff --git a/hello world.txt b/hello world.txt") == (
        "hello world.txt",
        "hello world.txt",
    )
    assert parse_diff_header('diff --git a/x.txt "b/\\303\\251.txt"') == ("x.txt", "é.txt")


def test_trailing_tab_after_path_with_space_is_dropped():
    raw = "\n".join(
        [
            "diff --git a/my file b/my file",
            "--- a/my file\t",
            "+++ b/my file\t",
            "@@ -1 +1 @@",
            "-a",
            "+b",
            "",
        ]
    )
    file = parse_commit_diff(raw)[0]
    assert file.old_path == "my file"
    assert file.new_path == "my file"


def test_body_lines_that_look_like_headers_stay_body_lines():
    raw = """\
diff --git a/notes.md b/notes.md
--- a/notes.md
+++ b/notes.md
@@ -1,2 +1,2 @@
--- old rule
+++ new rule
 diff --git inside text
"""
    file = parse_commit_diff(raw)[0]
    kinds = [(c.kind, c.text) for c in file.hunks[0].changes]
    assert kinds == [
        ("deleted", "-- old rule"),
        ("added", "++ new rule"),
        ("context", "diff --git inside text"),
    ]


def test_no_newline_marker_is_not_a_line():
    raw = """\
diff --git a/a.txt b/a.txt
--- a/a.txt
+++ b/a.txt
@@ -1 +1 @@
-old
\\ No newline at end of file
+new
\\ No newline at end of file
"""
    file = parse_commit_diff(raw)[0]
    assert [c.kind for c in file.hunks[0].changes] == ["deleted", "added"]
    assert file.hunks[0].changes[1].new_lineno == 1


def test_form_feed_inside_a_line_does_not_split_it():
    raw = "diff --git a/a.c b/a.c\n--- a/a.c\n+++ b/a.c\n@@ -1 +1 @@\n-x\x0cy\n+z\n"
    file = parse_commit_diff(raw)[0]
    assert file.hunks[0].changes[0].text == "x\x0cy"


def test_unrecognized_extended_header_fails():
    raw = """\
diff --git a/a.txt b/a.txt
frobnicated 42
--- a/a.txt
+++ b/a.txt
"""
    with pytest.raises(UnrecognizedDiffHeaderError):
        parse_commit_diff(raw)


def test_malformed_hunk_header_fails():
    raw = """\
diff --git a/a.txt b/a.txt
--- a/a.txt
+++ b/a.txt
@@ -x +y @@
+a
"""
    with pytest.raises(MalformedHunkError):
        parse_commit_diff(raw)


def test_skip_malformed_drops_only_the_bad_file():
    raw = """\
diff --git a/bad.txt b/bad.txt
frobnicated 42
diff --git a/good.txt b/good.txt
--- a/good.txt
+++ b/good.txt
@@ -1 +1 @@
-a
+b
"""
    files = parse_commit_diff(raw, "C", skip_malformed=True)
    assert [f.path for f in files] == ["good.txt"]


def test_split_ignores_preamble_and_tokenizer_marks_hunks():
    raw = "\ncommit header noise\ndiff --git a/a b/a\n--- a/a\n+++ b/a\n@@ -1 +1 @@\n-a\n+b\n"
    sections = split_file_diffs(raw)
    assert len(sections) == 1
    kinds = [token.kind for token in tokenize_file_diff(sections[0])]
    assert kinds == ["diff", "old file", "new file", "hunk", "deleted", "added"]


def test_empty_diff_has_no_files():
    assert parse_commit_diff("") == []
    assert parse_commit_diff("\n") == []


def test_rewrite_records_dissimilarity_separately():
    raw = """\
diff --git a/big.c b/big.c
dissimilarity index 80%
index 1111111..2222222 100644
--- a/big.c
+++ b/big.c
@@ -1 +1 @@
-old
+new
"""
    file = parse_commit_diff(raw)[0]
    assert file.status == "modified"
    assert file.dissimilarity_percent == 80
    assert file.similarity_percent is None


def test_line_before_any_hunk_is_rejected():
    builder = _FileChangeBuilder()
    builder.feed(DiffToken(kind="diff", line="diff --git a/a.txt b/a.txt"))

    with pytest.raises(UnrecognizedDiffHeaderError):
        builder.feed(DiffToken(kind="added", value="x", line="+x"))
