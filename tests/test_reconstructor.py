from push_digest.reconstructor import excluded_tips, reconstruct, reconstruct_created


def _linear(graph, names, branch="main"):
    previous = None
    for name in names:
        graph.commit(name, [previous] if previous else [])
        previous = name
    graph.refs[f"refs/heads/{branch}"] = previous


def test_fast_forward_lists_new_commits_oldest_first(graph):
    _linear(graph, ["A", "B", "C"])
    result = reconstruct(graph, "A", "C", excluded_tips(graph, "refs/heads/main"))

    assert result.is_fast_forward
    assert not result.is_rewind_only
    assert result.discarded == []
    assert result.forward == ["B", "C"]
    assert result.new_commits == ["B", "C"]
    assert result.explanation == ""
    assert result.summary_lines == [
        "    from  A commit A\n",
        "     via  B commit B\n",
        "     via  C commit C\n",
    ]


def test_commits_reachable_from_other_branches_are_not_new(graph):
    _linear(graph, ["A", "B", "C", "D"])
    graph.refs["refs/heads/other"] = "C"

    result = reconstruct(graph, "A", "D", excluded_tips(graph, "refs/heads/main"))

    assert result.is_fast_forward
    assert result.forward == ["B", "C", "D"]
    assert result.new_commits == ["D"]


def test_pure_rewind_reports_no_new_commits(graph):
    _linear(graph, ["A", "B", "C"])
    graph.refs["refs/heads/main"] = "A"

    result = reconstruct(graph, "C", "A", excluded_tips(graph, "refs/heads/main"))

    assert not result.is_fast_forward
    assert result.is_rewind_only
    assert result.discarded == ["C", "B"]
    assert result.new_commits == []
    assert "discarded existing revisions" in result.explanation
    assert result.summary_lines[:2] == [
        "discards  C commit C\n",
        "discards  B commit B\n",
    ]


def test_rewind_and_rebuild_reports_only_the_new_side(graph):
    graph.commit("A")
    graph.commit("B", ["A"])
    graph.commit("O1", ["B"])
    graph.commit("N1", ["B"])
    graph.commit("N2", ["N1"], branch="main")

    result = reconstruct(graph, "O1", "N2", excluded_tips(graph, "refs/heads/main"))

    assert not result.is_fast_forward
    assert not result.is_rewind_only
    assert result.discarded == ["O1"]
    assert result.forward == ["N1", "N2"]
    assert result.new_commits == ["N1", "N2"]
    assert "added new revisions after undoing" in result.explanation
    assert "(O1)" in result.explanation
    assert "(N2)" in result.explanation


def test_excluded_tips_cover_branches_and_tags_but_not_current_value(graph):
    _linear(graph, ["A", "B", "C"])
    graph.refs["refs/heads/other"] = "B"
    graph.refs["refs/heads/same-as-main"] = "C"
    graph.refs["refs/tags/v1"] = "A"
    graph.commit("R", ["A"])
    graph.refs["refs/remotes/origin/main"] = "R"

    assert excluded_tips(graph, "refs/heads/main") == ["B", "A"]


def test_created_branch_marks_its_tip(graph):
    _linear(graph, ["A", "B"])
    graph.commit("C", ["B"])
    graph.commit("D", ["C"], branch="feature")

    result = reconstruct_created(graph, "D", excluded_tips(graph, "refs/heads/feature"))

    assert result.new_commits == ["C", "D"]
    assert result.summary_lines == [
        "     via  C commit C\n",
        "     at   D commit D\n",
    ]


def test_created_branch_at_known_commit_has_nothing_new(graph):
    _linear(graph, ["A", "B"])
    graph.refs["refs/heads/copy"] = "B"

    result = reconstruct_created(graph, "B", ["B"])

    assert result.new_commits == []
    assert result.summary_lines == []
