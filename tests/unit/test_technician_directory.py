from refurb_workflow.technicians.directory import StaticTechnicianDirectory


class TestStaticTechnicianDirectory:
    def test_finds_known_name(self) -> None:
        directory = StaticTechnicianDirectory({"tech-1": "Dana Reyes"})
        assert directory.find_name("tech-1") == "Dana Reyes"

    def test_unknown_id_returns_none(self) -> None:
        directory = StaticTechnicianDirectory({"tech-1": "Dana Reyes"})
        assert directory.find_name("tech-2") is None

    def test_copies_mapping(self) -> None:
        mapping = {"tech-1": "Dana Reyes"}
        directory = StaticTechnicianDirectory(mapping)
        mapping["tech-2"] = "Sam Ortiz"
        assert directory.find_name("tech-2") is None
