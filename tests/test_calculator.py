"""
tests/test_calculator.py
========================
Pytest test suite for PhyloCalculator: index values, caching, error
handling and logging.

Reference data
--------------
balanced_4leaf.tree     ((A:1,B:1)AB:1,(C:1,D:1)CD:1)root:0;
    BALANCED:  g1: A=1 B=1   g2: C=1 D=1

asymmetric_5leaf.tree   ((A:1,B:2)AB:3,(C:4,(D:5,E:6)DE:7)CDE:8)root:0.5;
    ASYM:      g1: A=2 B=1   g2: B=3 C=1   g3: D=1 E=2   g4: A=1 E=1

    Global ranges: A=2 B=2 C=1 D=1 E=2 AB=3 DE=2 CDE=3 root=4
    Paths:  g1 = {A, B, AB, root}           length 6.5
            g2 = {B, C, AB, CDE, root}      length 17.5
            g1 vs g2:  A=5.5  B=1  C=12

two_leaf.tree           (X:5,Y:45)root:0;
    AED:       g1: X=4   g2: X=6 Y=1

untrimmed_4leaf.tree    ((A:1,B:1)AB:1,(C:1,Z:1)CZ:1)root:0;
    Z is not a basedata label, Q is not a tree node.
"""

import logging
import os
import sys
import warnings

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from phylodex import (
    InconsistentSubtreeWarning,
    MissingArgumentError,
    PhyloCalculator,
    quiet,
)
from phylodex._basedata import BaseData
from phylodex._calculator import NeighbourSets
from phylodex._tree import Tree

_TREES_DIR = os.path.join(os.path.dirname(__file__), "trees")

BALANCED = {"g1": {"A": 1, "B": 1}, "g2": {"C": 1, "D": 1}}
ASYM = {
    "g1": {"A": 2, "B": 1},
    "g2": {"B": 3, "C": 1},
    "g3": {"D": 1, "E": 2},
    "g4": {"A": 1, "E": 1},
}
AED = {"g1": {"X": 4}, "g2": {"X": 6, "Y": 1}}
UNTRIMMED = {"g1": {"A": 1, "Q": 2}, "g2": {"C": 1}}


def load_tree(filename: str) -> Tree:
    with open(os.path.join(_TREES_DIR, filename)) as fh:
        return Tree(fh.read().strip())


@pytest.fixture
def balanced():
    return PhyloCalculator(load_tree("balanced_4leaf.tree"), BaseData(BALANCED))


@pytest.fixture
def asym():
    return PhyloCalculator(load_tree("asymmetric_5leaf.tree"), BaseData(ASYM))


@pytest.fixture
def aed():
    return PhyloCalculator(load_tree("two_leaf.tree"), BaseData(AED))


@pytest.fixture
def untrimmed():
    return PhyloCalculator(load_tree("untrimmed_4leaf.tree"), BaseData(UNTRIMMED))


# ======================================================================== #
# Construction and validation                                               #
# ======================================================================== #


class TestConstruction:
    def test_accepts_newick_and_dict(self):
        calc = PhyloCalculator("((A:1,B:1)AB:1,(C:1,D:1)CD:1)root:0;", BALANCED)
        assert isinstance(calc.tree, Tree)
        assert isinstance(calc.basedata, BaseData)

    def test_missing_tree(self):
        with pytest.raises(MissingArgumentError, match="tree"):
            PhyloCalculator(None, BALANCED)

    def test_missing_basedata(self):
        with pytest.raises(MissingArgumentError, match="basedata"):
            PhyloCalculator("(A:1,B:1)r;", None)

    def test_missing_argument_is_value_error(self):
        with pytest.raises(ValueError):
            PhyloCalculator(None, None)

    def test_backend_resolved(self, balanced):
        assert balanced.backend in ("python", "cpu-parallel")

    def test_unknown_backend_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING):
            calc = PhyloCalculator("(A:1,B:1)r;", {"g1": {"A": 1}}, backend="gpu")
        assert calc.backend in ("python", "cpu-parallel")
        assert any("not available" in r.getMessage() for r in caplog.records)

    def test_calculations_registry(self):
        for name in PhyloCalculator.CALCULATIONS:
            assert name.startswith("calc_")
            assert callable(getattr(PhyloCalculator, name))


class TestNeighbourSets:
    def test_collation(self, asym):
        ns = asym.neighbour_sets(["g1"], ["g2"])
        assert isinstance(ns, NeighbourSets)
        assert ns.element_list_all == ["g1", "g2"]
        assert ns.label_hash1 == {"A": 2.0, "B": 1.0}
        assert ns.label_hash_all == {"A": 2.0, "B": 4.0, "C": 1.0}

    def test_duplicates_removed(self, asym):
        ns = asym.neighbour_sets(["g1", "g1"], ["g1"])
        assert ns.element_list1 == ["g1"]
        assert ns.element_list_all == ["g1"]
        assert ns.label_hash_all == {"A": 2.0, "B": 1.0}

    def test_single_group_string(self, asym):
        ns = asym.neighbour_sets("g3")
        assert ns.element_list1 == ["g3"]
        assert ns.element_list2 == []

    def test_missing_element_list(self, asym):
        with pytest.raises(MissingArgumentError):
            asym.neighbour_sets(None)

    def test_unknown_group(self, asym):
        with pytest.raises(KeyError, match="g9"):
            asym.neighbour_sets(["g9"])

    def test_pairwise_requires_single_groups(self):
        calc = PhyloCalculator(
            load_tree("asymmetric_5leaf.tree"), BaseData(ASYM), pairwise_mode=True
        )
        with pytest.raises(ValueError, match="exactly one group"):
            calc.neighbour_sets(["g1", "g2"], ["g3"])
        with pytest.raises(ValueError, match="exactly one group"):
            calc.neighbour_sets(["g1"])


class TestCalculate:
    def test_unknown_calculation(self, asym):
        with pytest.raises(KeyError, match="calc_nonsense"):
            asym.calculate(["calc_pd", "calc_nonsense"], ["g1"])

    def test_single_name(self, asym):
        assert asym.calculate("calc_pd", ["g1"])["PD"] == pytest.approx(6.5)

    def test_results_merged(self, asym):
        res = asym.calculate(["calc_pd", "calc_pe", "calc_phylo_abc"], ["g1"], ["g2"])
        assert {"PD", "PE_WE", "PHYLO_A"} <= set(res)

    def test_matches_individual_methods(self, asym):
        ns = asym.neighbour_sets(["g1"], ["g2"])
        res = asym.calculate(["calc_phylo_jaccard"], ["g1"], ["g2"])
        assert res == asym.calc_phylo_jaccard(ns)

    def test_every_calculation_runs(self, asym):
        res = asym.calculate(PhyloCalculator.CALCULATIONS, ["g1", "g3"], ["g2"])
        assert "PHYLO_RW_TURNOVER" in res
        assert "PD_CLADE_LOSS_ANC" in res

    def test_call_logged_at_debug(self, asym, caplog):
        with caplog.at_level(logging.DEBUG, logger="phylodex._calculator"):
            asym.calculate(["calc_pd", "calc_pe"], ["g1"], ["g2"])
        assert "calculate(2 indices, 1 + 1 groups, 3 labels)" in caplog.text

    def test_empty_neighbour_set(self, asym):
        res = asym.calculate(["calc_pd", "calc_pe", "calc_phylo_sorenson"], [])
        assert res["PD"] is None
        assert res["PE_WE"] is None
        assert res["PHYLO_SORENSON"] is None


# ======================================================================== #
# PD family                                                                 #
# ======================================================================== #


class TestPD:
    def test_balanced_both_groups(self, balanced):
        res = balanced.calculate(["calc_pd"], ["g1"], ["g2"])
        assert res["PD"] == pytest.approx(6.0)
        assert res["PD_P"] == pytest.approx(1.0)
        assert res["PD_per_taxon"] == pytest.approx(1.5)
        assert res["PD_P_per_taxon"] == pytest.approx(0.25)

    def test_single_group(self, asym):
        res = asym.calculate(["calc_pd"], ["g1"])
        assert res["PD"] == pytest.approx(6.5)
        assert res["PD_P"] == pytest.approx(6.5 / 36.5)

    def test_node_lists(self, asym):
        res = asym.calculate(
            ["calc_pd_node_list", "calc_pd_terminal_node_list", "calc_pd_terminal_node_count"],
            ["g1"],
        )
        assert res["PD_INCLUDED_NODE_LIST"] == {"A": 1.0, "AB": 3.0, "root": 0.5, "B": 2.0}
        assert res["PD_INCLUDED_TERMINAL_NODE_LIST"] == {"A": 1.0, "B": 2.0}
        assert res["PD_INCLUDED_TERMINAL_NODE_COUNT"] == 2

    def test_pd_local(self, asym):
        res = asym.calculate(["calc_pd_local"], ["g3"])
        assert res["PD_LOCAL"] == pytest.approx(11.0)
        assert res["PD_LOCAL_P"] == pytest.approx(11.0 / 36.5)

    def test_pd_local_spanning_root(self, asym):
        res = asym.calculate(["calc_pd", "calc_pd_local"], ["g4"])
        # A and E only meet at the root, whose root path is 0.5
        assert res["PD_LOCAL"] == pytest.approx(res["PD"] - 0.5)

    def test_last_shared_ancestor_props(self, asym):
        res = asym.calculate(["calc_last_shared_ancestor_props"], ["g3"])
        assert res["LAST_SHARED_ANCESTOR_DEPTH"] == 2
        assert res["LAST_SHARED_ANCESTOR_LENGTH"] == 7.0
        assert res["LAST_SHARED_ANCESTOR_DIST_TO_ROOT"] == pytest.approx(15.5)
        assert res["LAST_SHARED_ANCESTOR_DIST_TO_TIP"] == pytest.approx(6.0)
        assert res["LAST_SHARED_ANCESTOR_POS_REL"] == pytest.approx(15.5 / 21.5)


# ======================================================================== #
# Dissimilarity                                                             #
# ======================================================================== #


class TestDissimilarity:
    def test_balanced_disjoint(self, balanced):
        res = balanced.calculate(
            ["calc_phylo_abc", "calc_phylo_sorenson", "calc_phylo_jaccard", "calc_phylo_s2"],
            ["g1"],
            ["g2"],
        )
        assert res["PHYLO_A"] == 0
        assert res["PHYLO_B"] == pytest.approx(3.0)
        assert res["PHYLO_C"] == pytest.approx(3.0)
        assert res["PHYLO_SORENSON"] == 1
        assert res["PHYLO_JACCARD"] == 1
        assert res["PHYLO_S2"] == 1

    def test_balanced_identical(self, balanced):
        res = balanced.calculate(
            ["calc_phylo_sorenson", "calc_phylo_jaccard", "calc_phylo_s2"], ["g1"], ["g1"]
        )
        assert res == {"PHYLO_SORENSON": 0, "PHYLO_JACCARD": 0, "PHYLO_S2": 0}

    def test_asymmetric(self, asym):
        res = asym.calculate(
            ["calc_phylo_abc", "calc_phylo_sorenson", "calc_phylo_jaccard", "calc_phylo_s2"],
            ["g1"],
            ["g2"],
        )
        assert res["PHYLO_A"] == pytest.approx(5.5)
        assert res["PHYLO_B"] == pytest.approx(1.0)
        assert res["PHYLO_C"] == pytest.approx(12.0)
        assert res["PHYLO_ABC"] == pytest.approx(18.5)
        assert res["PHYLO_SORENSON"] == pytest.approx(1 - 11 / 24)
        assert res["PHYLO_JACCARD"] == pytest.approx(1 - 5.5 / 18.5)
        assert res["PHYLO_S2"] == pytest.approx(1 - 5.5 / 6.5)

    def test_one_sided_is_undefined(self, asym):
        res = asym.calculate(["calc_phylo_sorenson"], ["g1"])
        assert res["PHYLO_SORENSON"] is None

    def test_abc_paths_cached_per_group(self, asym):
        asym.calculate(["calc_phylo_abc"], ["g1"], ["g2"])
        assert set(asym.cache.abc_paths) == {"g1", "g2"}

    def test_pairwise_mode_agrees(self, asym):
        pairwise = PhyloCalculator(asym.tree, asym.basedata, pairwise_mode=True)
        calcs = ["calc_phylo_abc", "calc_phylo_sorenson", "calc_phylo_jaccard", "calc_phylo_s2"]
        general = asym.calculate(calcs, ["g1"], ["g2"])
        fast = pairwise.calculate(calcs, ["g1"], ["g2"])
        assert fast == pytest.approx(general)
        assert pairwise.cache.pairwise_branch_sums == {
            "g1": pytest.approx(6.5),
            "g2": pytest.approx(17.5),
        }

    def test_multi_group_sides(self, asym):
        res = asym.calculate(["calc_phylo_abc"], ["g1", "g2"], ["g3"])
        # union of g1, g2 is 18.5; g3 adds D, E, DE; shares CDE and root
        assert res["PHYLO_A"] == pytest.approx(8.5)
        assert res["PHYLO_B"] == pytest.approx(10.0)
        assert res["PHYLO_C"] == pytest.approx(18.0)


# ======================================================================== #
# PE family                                                                 #
# ======================================================================== #


class TestPE:
    def test_balanced(self, balanced):
        res = balanced.calculate(["calc_pe", "calc_pd_endemism", "calc_pe_single"], ["g1"])
        assert res["PE_WE"] == pytest.approx(3.0)
        assert res["PE_WE_P"] == pytest.approx(0.5)
        assert res["PD_ENDEMISM"] == pytest.approx(3.0)
        assert res["PE_WE_SINGLE"] == pytest.approx(3.0)

    def test_single_group(self, asym):
        res = asym.calculate(["calc_pe", "calc_pe_lists"], ["g1"])
        assert res["PE_WE"] == pytest.approx(2.625)
        assert res["PE_WE_P"] == pytest.approx(2.625 / 36.5)
        assert res["PE_WTLIST"] == pytest.approx(
            {"A": 0.5, "AB": 1.0, "root": 0.125, "B": 1.0}
        )
        assert res["PE_RANGELIST"] == {"A": 2, "AB": 3, "root": 4, "B": 2}
        assert res["PE_LOCAL_RANGELIST"] == {"A": 1, "AB": 1, "root": 1, "B": 1}

    def test_pair(self, asym):
        res = asym.calculate(["calc_pe", "calc_pe_lists"], ["g1"], ["g2"])
        assert res["PE_WE"] == pytest.approx(8.75 + 8 / 3)
        assert res["PE_LOCAL_RANGELIST"]["B"] == 2
        assert res["PE_WTLIST"]["root"] == pytest.approx(0.25)

    def test_per_group_results_cached(self, asym):
        asym.calculate(["calc_pe"], ["g1"], ["g2"])
        assert set(asym.cache.pe_results) == {"g1", "g2"}

    def test_pd_endemism(self, asym):
        res = asym.calculate(["calc_pd_endemism"], ["g1"], ["g2"])
        assert res["PD_ENDEMISM"] == pytest.approx(6.0)
        assert set(res["PD_ENDEMISM_WTS"]) == {"B", "C"}

    def test_pe_single(self, asym):
        res = asym.calculate(["calc_pe_single"], ["g1"], ["g2"])
        assert res["PE_WE_SINGLE"] == pytest.approx(6.625 + 8 / 3)

    def test_corrected_weighted_endemism(self, asym):
        res = asym.calculate(["calc_phylo_corrected_weighted_endemism"], ["g1"])
        assert res["PE_CWE"] == pytest.approx(2.625 / 6.5)

    def test_pe_central(self, asym):
        res = asym.calculate(
            ["calc_pe_central", "calc_pe_central_lists", "calc_pe_central_cwe"],
            ["g1"],
            ["g2"],
        )
        assert res["PEC_WE"] == pytest.approx(4.75)
        assert res["PEC_WE_P"] == pytest.approx(4.75 / 36.5)
        assert set(res["PEC_WTLIST"]) == {"A", "B", "AB", "root"}
        assert res["PEC_CWE_PD"] == pytest.approx(6.5)
        assert res["PEC_CWE"] == pytest.approx(4.75 / 6.5)

    def test_pe_central_without_set2(self, asym):
        res = asym.calculate(["calc_pe", "calc_pe_central", "calc_pe_central_lists"], ["g1"])
        assert res["PEC_WE"] == pytest.approx(res["PE_WE"])
        assert res["PEC_WTLIST"] == pytest.approx(
            {"A": 0.5, "AB": 1.0, "root": 0.125, "B": 1.0}
        )


# ======================================================================== #
# Clades                                                                    #
# ======================================================================== #


class TestClades:
    def test_pd_contributions(self, asym):
        res = asym.calculate(["calc_pd_clade_contributions"], ["g1"], ["g2"])
        assert res["PD_CLADE_SCORE"] == pytest.approx(
            {"A": 1, "B": 2, "C": 4, "AB": 6, "CDE": 12, "root": 18.5}
        )
        assert res["PD_CLADE_CONTR"]["root"] == pytest.approx(1.0)
        assert res["PD_CLADE_CONTR_P"]["root"] == pytest.approx(18.5 / 36.5, abs=1e-10)

    def test_pd_loss(self, asym):
        res = asym.calculate(
            ["calc_pd_clade_loss", "calc_pd_clade_loss_ancestral"], ["g1"], ["g2"]
        )
        assert res["PD_CLADE_LOSS_SCORE"]["C"] == pytest.approx(12.0)
        assert res["PD_CLADE_LOSS_SCORE"]["CDE"] == pytest.approx(12.0)
        assert res["PD_CLADE_LOSS_SCORE"]["root"] == pytest.approx(18.5)
        assert res["PD_CLADE_LOSS_ANC"]["C"] == pytest.approx(8.0)
        assert res["PD_CLADE_LOSS_ANC"]["root"] == 0

    def test_root_loss_equals_clade_score(self, balanced):
        # The root has no parent, so removing it loses its whole clade
        res = balanced.calculate(
            [
                "calc_pd",
                "calc_pe",
                "calc_pd_clade_loss",
                "calc_pd_clade_loss_ancestral",
                "calc_pe_clade_loss",
                "calc_pe_clade_loss_ancestral",
            ],
            ["g1"],
            ["g2"],
        )
        assert res["PD_CLADE_LOSS_SCORE"]["root"] == pytest.approx(6.0)
        assert res["PD_CLADE_LOSS_SCORE"]["root"] == pytest.approx(res["PD"])
        assert res["PE_CLADE_LOSS_SCORE"]["root"] == pytest.approx(res["PE_WE"])
        assert res["PD_CLADE_LOSS_ANC"]["root"] == 0
        assert res["PE_CLADE_LOSS_ANC"]["root"] == 0

    def test_pe_contributions(self, asym):
        res = asym.calculate(["calc_pe", "calc_pe_clade_contributions"], ["g1"], ["g2"])
        scores = res["PE_CLADE_SCORE"]
        assert scores["AB"] == pytest.approx(4.5)
        assert scores["CDE"] == pytest.approx(4 + 8 / 3)
        assert scores["root"] == pytest.approx(res["PE_WE"])
        assert res["PE_CLADE_CONTR"]["root"] == pytest.approx(1.0, abs=1e-10)

    def test_pe_loss(self, asym):
        res = asym.calculate(
            ["calc_pe_clade_loss", "calc_pe_clade_loss_ancestral"], ["g1"], ["g2"]
        )
        assert res["PE_CLADE_LOSS_SCORE"]["C"] == pytest.approx(4 + 8 / 3)
        assert res["PE_CLADE_LOSS_ANC"]["C"] == pytest.approx(8 / 3)

    def test_inconsistent_subtree_warns(self, caplog):
        calc = PhyloCalculator(
            "((A:1,B:1)AB:1,C:1)root:0;", {"g1": {"A": 1, "AB": 1}}
        )
        with caplog.at_level(logging.WARNING):
            with pytest.warns(InconsistentSubtreeWarning):
                res = calc.calculate(["calc_pd_clade_contributions"], ["g1"])
        assert res["PD_CLADE_SCORE"]["AB"] == pytest.approx(2.0)
        assert any("name internal nodes" in r.getMessage() for r in caplog.records)

    def test_consistent_subtree_does_not_warn(self, asym):
        with warnings.catch_warnings():
            warnings.simplefilter("error", InconsistentSubtreeWarning)
            asym.calculate(["calc_pd_clade_loss"], ["g1"], ["g2"])


# ======================================================================== #
# Labels on and off the tree; trimming                                      #
# ======================================================================== #


class TestLabelsAndTrimming:
    def test_trimmed_tree_reused_when_complete(self, balanced):
        assert balanced.trimmed_tree is balanced.tree

    def test_trimmed_tree(self):
        calc = PhyloCalculator(
            load_tree("untrimmed_4leaf.tree"), {"g1": {"A": 1, "B": 1}, "g2": {"C": 1}}
        )
        assert calc.trimmed_tree is not calc.tree
        assert "Z" not in calc.trimmed_tree
        assert calc.trimmed_tree.total_length == pytest.approx(5.0)

    def test_trim_logged(self, caplog):
        calc = PhyloCalculator(
            load_tree("untrimmed_4leaf.tree"), {"g1": {"A": 1, "B": 1}, "g2": {"C": 1}}
        )
        with caplog.at_level(logging.INFO, logger="phylodex"):
            calc.trimmed_tree
        assert any("removed 1 of 4 terminals" in r.getMessage() for r in caplog.records)

    def test_pe_uses_trimmed_length(self):
        calc = PhyloCalculator(
            load_tree("untrimmed_4leaf.tree"), {"g1": {"A": 1, "B": 1}, "g2": {"C": 1}}
        )
        res = calc.calculate(["calc_pe"], ["g2"])
        # C=1 and CZ=1 are endemic to g2; root=0
        assert res["PE_WE"] == pytest.approx(2.0)
        assert res["PE_WE_P"] == pytest.approx(2.0 / 5.0)

    def test_labels_not_on_tree(self, untrimmed, caplog):
        with caplog.at_level(logging.WARNING):
            missing = untrimmed.labels_not_on_tree
        assert missing == {"Q": 1}
        assert any("not on the tree" in r.getMessage() for r in caplog.records)

    def test_labels_not_on_tree_results(self, untrimmed):
        res = untrimmed.calculate(
            ["calc_labels_not_on_tree", "calc_labels_on_tree", "calc_count_labels_on_tree"],
            ["g1"],
        )
        assert res["PHYLO_LABELS_NOT_ON_TREE"] == {"Q": 2.0}
        assert res["PHYLO_LABELS_NOT_ON_TREE_N"] == 1
        assert res["PHYLO_LABELS_NOT_ON_TREE_P"] == 0.5
        assert res["PHYLO_LABELS_ON_TREE"] == {"A": 1.0}
        assert res["PHYLO_LABELS_ON_TREE_COUNT"] == 1

    def test_pd_ignores_labels_not_on_tree(self, untrimmed):
        res = untrimmed.calculate(["calc_pd"], ["g1"])
        assert res["PD"] == pytest.approx(2.0)
        assert res["PD_per_taxon"] == pytest.approx(2.0)


# ======================================================================== #
# Distinctiveness, abundance and turnover                                   #
# ======================================================================== #


class TestAED:
    def test_aed_lists(self, aed):
        res = aed.calculate(["calc_phylo_aed"], ["g1"])
        assert res["PHYLO_AED_LIST"] == {"X": pytest.approx(0.5)}
        assert res["PHYLO_ES_LIST"] == {"X": pytest.approx(5.0)}
        assert res["PHYLO_ED_LIST"] == {"X": pytest.approx(5.0)}

    def test_aed_t(self, aed):
        res = aed.calculate(
            ["calc_phylo_aed_t", "calc_phylo_aed_t_wtlists", "calc_phylo_corrected_weighted_rarity"],
            ["g1"],
        )
        assert res["PHYLO_AED_T"] == pytest.approx(2.0)
        assert res["PHYLO_AED_T_WTLIST"] == {"X": pytest.approx(2.0)}
        assert res["PHYLO_AED_T_WTLIST_P"] == {"X": pytest.approx(1.0)}
        assert res["PHYLO_RARITY_CWR"] == pytest.approx(0.4)

    def test_global_tables(self, asym):
        assert asym.node_abundance["root"] == 12
        assert asym.node_abundance["AB"] == 7
        assert asym.aed_scores["AED_SCORES"]["A"] == pytest.approx(
            1 / 3 + 3 / 7 + 0.5 / 12
        )
        assert asym.inverse_range_weighted_lengths["CDE"] == pytest.approx(8 / 3)
        assert asym.node_ranges.range_count("root") == 4

    def test_phylo_abundance(self, asym):
        res = asym.calculate(["calc_phylo_abundance"], ["g1"])
        assert res["PHYLO_ABUNDANCE"] == pytest.approx(14.5)
        assert res["PHYLO_ABUNDANCE_BRANCH_HASH"]["AB"] == pytest.approx(9.0)


class TestTurnover:
    def test_rw_turnover(self, asym):
        res = asym.calculate(["calc_rw_turnover"], ["g1"], ["g2"])
        assert res["RW_TURNOVER"] == pytest.approx(0.6)

    def test_phylo_rw_turnover(self, asym):
        res = asym.calculate(["calc_phylo_rw_turnover"], ["g1"], ["g2"])
        assert res["PHYLO_RW_TURNOVER"] == pytest.approx(
            1 - 4.25 / (4.25 + 0.5 + 4 + 8 / 3)
        )

    def test_phylo_rw_turnover_pairwise(self, asym):
        pairwise = PhyloCalculator(asym.tree, asym.basedata, pairwise_mode=True)
        a = asym.calculate(["calc_phylo_rw_turnover"], ["g1"], ["g2"])
        b = pairwise.calculate(["calc_phylo_rw_turnover"], ["g1"], ["g2"])
        assert a == pytest.approx(b)


# ======================================================================== #
# Caching                                                                   #
# ======================================================================== #


class TestCaching:
    def test_group_cache_enabled_for_pe_with_pd(self, asym):
        asym.calculate(["calc_pe", "calc_pd"], ["g1"])
        assert asym.cache.paths.use_group_cache
        assert "g1" in asym.cache.paths.by_group

    def test_group_cache_enabled_for_pe_with_abc_lists(self, asym):
        asym.calculate(["calc_pe", "calc_pe_central"], ["g1"], ["g2"])
        assert asym.cache.paths.use_group_cache

    def test_group_cache_disabled_otherwise(self, asym):
        asym.calculate(["calc_pe", "calc_pd"], ["g1"])
        asym.calculate(["calc_pd"], ["g1"])
        assert not asym.cache.paths.use_group_cache
        asym.calculate(["calc_pe"], ["g1"])
        assert not asym.cache.paths.use_group_cache

    def test_group_cache_always_on_in_pairwise_mode(self):
        calc = PhyloCalculator(
            load_tree("asymmetric_5leaf.tree"), BaseData(ASYM), pairwise_mode=True
        )
        calc.calculate(["calc_phylo_sorenson"], ["g1"], ["g2"])
        assert calc.cache.paths.use_group_cache

    def test_group_cache_forced(self):
        calc = PhyloCalculator(
            load_tree("asymmetric_5leaf.tree"),
            BaseData(ASYM),
            use_path_length_cache_by_group=False,
        )
        calc.calculate(["calc_pe", "calc_pd"], ["g1"])
        assert not calc.cache.paths.use_group_cache
        assert calc.cache.paths.by_group == {}

    def test_cached_results_stable(self, asym):
        calcs = ["calc_pd", "calc_pe", "calc_pe_central", "calc_phylo_abc"]
        first = asym.calculate(calcs, ["g1"], ["g2"])
        asym.calculate(calcs, ["g2"], ["g3"])
        again = asym.calculate(calcs, ["g1"], ["g2"])
        assert again == first

    def test_clear_caches(self, asym):
        asym.calculate(["calc_pe", "calc_phylo_abc"], ["g1"], ["g2"])
        asym.clear_caches()
        assert asym.cache.pe_results == {}
        assert asym.cache.abc_paths == {}
        assert asym.cache.paths.ancestors == {}

    def test_global_tables_built_once(self, asym):
        assert asym.node_ranges is asym.node_ranges
        assert asym.aed_scores is asym.aed_scores

    def test_quiet_construction(self, caplog):
        with caplog.at_level(logging.INFO):
            with quiet():
                PhyloCalculator("(A:1,B:1)r;", {"g1": {"A": 1}})
        assert not [r for r in caplog.records if r.name.startswith("phylodex")]
