"""Tests for ligenv.graph."""

import copy

import pytest

from ligenv.graph import (
    BindingSite,
    GraphConstructionError,
    InteractionNode,
    LigandResidueLink,
    ObjectSet,
    Residue,
    ResidueResidueLink,
    classify,
)
from ligenv.models import InteractionType, ResidueRecord, UnknownInteractionTypeError


def _residue(chain="A", number=45, code="SER", insertion=" ", is_ligand=False) -> Residue:
    return Residue(
        chain_id=chain,
        author_residue_number=number,
        chem_comp_id=code,
        author_insertion_code=insertion,
        is_ligand=is_ligand,
    )


def _record(chain, number, code, insertion=" ") -> dict:
    return {
        "chain_id": chain,
        "author_residue_number": number,
        "chem_comp_id": code,
        "author_insertion_code": insertion,
    }


class TestResidue:
    def test_id_omits_blank_insertion_code(self):
        assert _residue(insertion=" ").id == "A45"
        assert _residue(insertion="").id == "A45"
        assert _residue(insertion=None).id == "A45"

    def test_id_includes_insertion_code(self):
        assert _residue(insertion="B").id == "A45B"

    def test_equality_uses_derived_id_only(self):
        """Residues with the same id are equal even if their other fields differ."""
        assert _residue(code="SER") == _residue(code="ALA", is_ligand=True)
        assert hash(_residue(code="SER")) == hash(_residue(code="ALA"))
        assert _residue(number=45) != _residue(number=46)

    def test_is_immutable(self):
        residue = _residue()
        with pytest.raises(ValueError):
            residue.chain_id = "B"

    def test_from_record(self):
        residue = Residue.from_record(ResidueRecord.model_validate(_record("B", 12, "HOH", "A")), is_ligand=False)
        assert residue.id == "B12A"
        assert not residue.is_ligand


class TestInteractionNode:
    def test_static_when_scaled_down(self):
        residue = _residue()
        assert InteractionNode(residue, 0.0, "a").static
        assert InteractionNode(residue, 0.5, "a").static
        assert not InteractionNode(residue, 1.0, "a").static

    def test_initial_position_pins_the_node(self):
        node = InteractionNode(_residue(), 0.0, "a", 1.0, 2.0)
        assert (node.x, node.y) == (1.0, 2.0)
        assert (node.fx, node.fy) == (1.0, 2.0)

    def test_equality_includes_pinned_position(self):
        """Two nodes with the same id but different pinned positions are distinct."""
        residue = _residue()
        assert InteractionNode(residue, 1.0, "A45") == InteractionNode(residue, 1.0, "A45")
        assert InteractionNode(residue, 0.0, "A45", 1.0, 1.0) != InteractionNode(residue, 0.0, "A45", 2.0, 1.0)

    def test_object_set_keeps_same_id_nodes_with_different_pins(self):
        nodes = ObjectSet()
        first = nodes.try_add(InteractionNode(_residue(), 0.0, "A45", 1.0, 1.0))
        second = nodes.try_add(InteractionNode(_residue(), 0.0, "A45", 2.0, 1.0))
        assert first is not second
        assert len(nodes) == 2

    def test_label(self):
        node = InteractionNode(_residue(chain="A_2", insertion="B"), 1.0, "x")
        assert node.label() == "SER | A[2] | 45B"
        node = InteractionNode(_residue(chain="A_1"), 1.0, "x")
        assert node.label() == "SER | A | 45"
        node = InteractionNode(_residue(chain="C"), 1.0, "x")
        assert node.label() == "SER | C | 45"


class TestObjectSet:
    def test_try_add_returns_registered_instance(self):
        residues = ObjectSet()
        first = residues.try_add(_residue(code="SER"))
        second = residues.try_add(_residue(code="SER"))
        assert first is second
        assert len(residues) == 1

    def test_keeps_insertion_order(self):
        residues = ObjectSet()
        for number in (3, 1, 2, 1):
            residues.try_add(_residue(number=number))
        assert [r.author_residue_number for r in residues] == [3, 1, 2]

    def test_discard(self):
        residues = ObjectSet()
        residue = residues.try_add(_residue())
        residues.discard(residue)
        assert residue not in residues
        residues.discard(residue)  # no error on missing member
        assert len(residues) == 0


class TestClassification:
    @pytest.mark.parametrize(
        "tags, expected",
        [
            (["hbond", "vdw"], "electrostatic"),
            (["vdw", "hbond"], "electrostatic"),
            (["covalent", "hbond"], "covalent"),
            (["AMIDERING", "FF"], "amide"),
            (["vdw", "FF"], "vdw"),
            (["hydrophobic"], "hydrophobic"),
            (["OT"], "aromatic"),
            (["CATIONPI"], "atom-pi"),
            (["metal_complex"], "metal"),
            (["vdw_clash"], "clashes"),
            (["something_else"], "other"),
            ([], "other"),
        ],
    )
    def test_first_matching_class_wins(self, tags, expected):
        assert classify(tags) == expected

    def test_bound_molecule_link_class(self):
        a = InteractionNode(_residue(number=1, code="NAG", is_ligand=True), 1.0, "A1")
        b = InteractionNode(_residue(number=2, code="NAG", is_ligand=True), 1.0, "A2")
        link = ResidueResidueLink(a, b, {"atom_atom": ["covalent"]})
        assert link.is_bound_molecule_link()
        assert link.link_class() == "ligand"

    def test_covalent_link_to_residue_is_not_a_bound_molecule_link(self):
        a = InteractionNode(_residue(number=1, code="NAG", is_ligand=True), 1.0, "A1")
        b = InteractionNode(_residue(number=2, code="ASN"), 1.0, "A2")
        link = ResidueResidueLink(a, b, {"atom-atom": ["covalent"]})
        assert not link.is_bound_molecule_link()
        assert link.link_class() == "covalent"

    def test_unknown_interaction_type_is_fatal(self):
        a = InteractionNode(_residue(number=1), 1.0, "A1")
        b = InteractionNode(_residue(number=2), 1.0, "A2")
        with pytest.raises(UnknownInteractionTypeError):
            ResidueResidueLink(a, b, {"atom_sphere": ["vdw"]})

    def test_has_clash(self):
        a = InteractionNode(_residue(number=1), 1.0, "A1")
        b = InteractionNode(_residue(number=2), 1.0, "A2")
        assert ResidueResidueLink(a, b, {"atom_atom": ["vdw_clash"]}).has_clash()
        assert not ResidueResidueLink(a, b, {"atom_atom": ["vdw"]}).has_clash()


class TestLinks:
    def test_contains_both_nodes_in_any_order(self):
        a = InteractionNode(_residue(number=1), 1.0, "A1")
        b = InteractionNode(_residue(number=2), 1.0, "A2")
        c = InteractionNode(_residue(number=3), 1.0, "A3")
        link = ResidueResidueLink(a, b, {"atom_atom": ["vdw"]})
        assert link.contains_both_nodes(a, b)
        assert link.contains_both_nodes(b, a)
        assert not link.contains_both_nodes(a, c)
        assert link.other_node(a) is b
        assert link.other_node(b) is a

    def test_contains_residue(self):
        a = InteractionNode(_residue(number=1), 1.0, "A1")
        b = InteractionNode(_residue(number=2), 1.0, "A2")
        link = ResidueResidueLink(a, b, {"atom_atom": ["vdw"]})
        assert link.contains_residue(_residue(number=1))
        assert link.contains_residue(_residue(number=2))
        assert not link.contains_residue(_residue(number=3))

    def test_residue_link_tooltip(self):
        a = InteractionNode(_residue(number=1), 1.0, "A1")
        b = InteractionNode(_residue(number=2), 1.0, "A2")
        link = ResidueResidueLink(a, b, {"atom_atom": ["hbond", "vdw"], "plane_plane": ["FF"]})
        assert link.tooltip() == "<ul>hbond, vdw, FF</ul>"

    def test_ligand_link_tooltip_flags(self):
        ligand = InteractionNode(_residue(number=301, code="LIG", is_ligand=True), 0.0, "A301_O1", 0, 0)
        serine = InteractionNode(_residue(number=45, code="SER"), 1.0, "A45")
        link = LigandResidueLink(ligand, serine, ["O1"], ["N"], "atom-atom", ["hbond"], 2.9)
        link.add_interaction(["O1"], ["OG"], "atom-atom", ["hbond"], 3.1)
        link.add_interaction(["O1"], ["N"], "atom-atom", ["hbond"], 2.9)

        tooltip = link.tooltip()
        assert tooltip.startswith("<ul>") and tooltip.endswith("</ul>")
        assert "<li><span>backbone</span> interaction (<b>N</b> | hbond): 2.9Å</li>" in tooltip
        assert "<li><span>side chain</span> interaction (<b>OG</b> | hbond): 3.1Å</li>" in tooltip
        assert tooltip.count("<li>") == 2  # identical lines are merged

    def test_ligand_link_tooltip_for_non_amino_acid_target(self):
        ligand = InteractionNode(_residue(number=301, code="LIG", is_ligand=True), 0.0, "A301_O1", 0, 0)
        water = InteractionNode(_residue(number=12, code="HOH"), 1.0, "A12")
        link = LigandResidueLink(ligand, water, ["O1"], ["O"], "atom_atom", ["hbond"], 2.7)
        assert "<span>ligand</span>" in link.tooltip()

    def test_atoms_are_deduplicated(self):
        ligand = InteractionNode(_residue(number=301, code="LIG", is_ligand=True), 0.0, "x", 0, 0)
        serine = InteractionNode(_residue(number=45, code="SER"), 1.0, "A45")
        link = LigandResidueLink(ligand, serine, ["O1"], ["N"], "atom_atom", ["hbond"], 2.9)
        link.add_interaction(["O1", "C1"], ["OG", "N"], "atom_atom", ["vdw"], 3.5)
        assert link.source_atoms() == ["O1", "C1"]
        assert link.target_atoms() == ["N", "OG"]
        assert all(i.interaction_type == InteractionType.ATOM_ATOM for i in link.interactions)


class TestFromBoundMolecule:
    def test_residues_and_nodes(self, bound_molecule_site):
        ids = [r.id for r in bound_molecule_site.residues]
        assert ids[:2] == ["A501", "A502"]  # composition ligands come first
        assert sorted(ids) == sorted(["A501", "A502", "A30", "A31", "B12A"])
        assert sorted(n.id for n in bound_molecule_site.interaction_nodes) == sorted(ids)
        assert [r.id for r in bound_molecule_site.ligands()] == ["A501", "A502"]

    def test_repeated_residue_is_deduplicated(self, bound_molecule_payload):
        """The same residue referenced by K records yields one residue and one node."""
        body = bound_molecule_payload["1xyz"][0]
        record = body["interactions"][0]
        for k in (1, 2, 5):
            data = copy.deepcopy(body)
            data["interactions"] = [copy.deepcopy(record) for _ in range(k)]
            site = BindingSite.from_bound_molecule("1xyz", data)
            assert [r.id for r in site.residues].count("A30") == 1
            assert [n.id for n in site.interaction_nodes].count("A30") == 1
            nodes = [link.target for link in site.links if link.target.id == "A30"]
            assert all(node is nodes[0] for node in nodes)

    def test_one_link_per_record(self, bound_molecule_site):
        residue_links = [x for x in bound_molecule_site.links if x.link_class() != "ligand"]
        assert len(residue_links) == 4
        assert [x.link_class() for x in residue_links] == ["electrostatic", "vdw", "electrostatic", "electrostatic"]

    def test_no_self_links(self, bound_molecule_site):
        for link in bound_molecule_site.links:
            assert link.source is not link.target
            assert link.source.residue != link.target.residue

    def test_connections_add_covalent_links(self, bound_molecule_site):
        ligand_links = [x for x in bound_molecule_site.links if x.link_class() == "ligand"]
        assert len(ligand_links) == 1
        assert {ligand_links[0].source.id, ligand_links[0].target.id} == {"A501", "A502"}

    def test_connections_do_not_duplicate_existing_links(self, bound_molecule_payload):
        body = bound_molecule_payload["1xyz"][0]
        body["composition"]["connections"] = [["A501", "A30"]]
        site = BindingSite.from_bound_molecule("1xyz", body)
        assert len(site.links) == 4

    def test_connection_creates_missing_node(self, bound_molecule_payload):
        body = bound_molecule_payload["1xyz"][0]
        body["composition"]["ligands"].append(_record("A", 503, "FUC"))
        body["composition"]["connections"].append(["A502", "A503"])
        site = BindingSite.from_bound_molecule("1xyz", body)
        assert site.node("A503") is not None
        assert any(x.contains_both_nodes(site.node("A502"), site.node("A503")) for x in site.links)

    def test_connection_to_unknown_residue_fails(self, bound_molecule_payload):
        body = bound_molecule_payload["1xyz"][0]
        body["composition"]["connections"].append(["A502", "Z999"])
        with pytest.raises(GraphConstructionError):
            BindingSite.from_bound_molecule("1xyz", body)

    def test_neighbours(self, bound_molecule_site):
        trp = bound_molecule_site.node("A31")
        neighbours = bound_molecule_site.neighbours(trp)
        assert neighbours[0] is trp
        assert sorted(n.id for n in neighbours[1:]) == ["A502", "B12A"]


class TestFromLigand:
    def test_bm_id(self, ligand_site):
        assert ligand_site.bm_id == "LIG_A_301"
        assert ligand_site.pdb_id == "1abc"

    def test_nodes(self, ligand_site, depiction):
        ids = [n.id for n in ligand_site.interaction_nodes]
        assert ids[:7] == [f"A301_{atom.name}" for atom in depiction.atoms]
        assert "A301_C1_C2_C3_C4_C5_C6" in ids
        assert {"A45", "A80", "A120"} <= set(ids)
        assert len(ids) == len(set(ids)) == 11

    def test_ligand_nodes_are_pinned_and_static(self, ligand_site, depiction):
        atom_node = ligand_site.node("A301_O1")
        assert atom_node.scale == 0.0 and atom_node.static
        assert (atom_node.fx, atom_node.fy) == (-5.0, -8.66)

        group_node = ligand_site.node("A301_C1_C2_C3_C4_C5_C6")
        center = depiction.center(["C1", "C2", "C3", "C4", "C5", "C6"])
        assert group_node.scale == 0.5 and group_node.static
        assert (group_node.fx, group_node.fy) == (center.x, center.y)

        assert not ligand_site.node("A45").static

    def test_self_contact_is_ignored(self, ligand_site):
        """The ligand contacting itself creates neither a node nor a link."""
        assert ligand_site.node("A301") is None
        for link in ligand_site.links:
            assert link.source.residue != link.target.residue

    def test_repeated_records_share_a_link(self, ligand_site):
        links = [x for x in ligand_site.links if x.target.id == "A45"]
        assert len(links) == 1
        assert len(links[0].interactions) == 2
        assert links[0].link_class() == "electrostatic"

    def test_aromatic_atom_link_is_suppressed(self, ligand_site):
        """The atom-atom aromatic contact is implied by the ring stacking and dropped."""
        links = [x for x in ligand_site.links if x.target.id == "A80"]
        assert len(links) == 1
        assert links[0].source.id == "A301_C1_C2_C3_C4_C5_C6"
        assert links[0].interactions[0].interaction_type == InteractionType.PLANE_PLANE

    def test_aromatic_atom_link_is_kept_without_ring_contact(self, ligand_payload, depiction):
        body = ligand_payload["1abc"][0]
        body["interactions"] = [x for x in body["interactions"] if x["interaction_type"] != "plane-plane"]
        site = BindingSite.from_ligand("1abc", body, depiction)
        links = [x for x in site.links if x.target.id == "A80"]
        assert len(links) == 1
        assert links[0].link_class() == "aromatic"

    def test_unknown_ligand_atom_fails(self, ligand_payload, depiction):
        from ligenv.depiction import DepictionError

        body = ligand_payload["1abc"][0]
        body["interactions"][0]["ligand_atoms"] = ["XX"]
        with pytest.raises(DepictionError):
            BindingSite.from_ligand("1abc", body, depiction)

    def test_reset_positions_keeps_static_nodes(self, ligand_site):
        serine = ligand_site.node("A45")
        serine.fx, serine.fy = 10.0, 10.0
        ligand_site.reset_positions()
        assert serine.fx is None and serine.fy is None
        assert ligand_site.node("A301_O1").fx == -5.0
