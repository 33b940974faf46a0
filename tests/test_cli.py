import pytest

from eoulsan import eoulsan
from eoulsan.__init__ import __VERSION__


def test_version(monkeypatch, capsys):
    monkeypatch.setattr('sys.argv', ['eoulsan', '--version'])
    with pytest.raises(SystemExit):
        eoulsan.main()
    assert __VERSION__ in capsys.readouterr().out


def test_design_subcommand(tmp_path, monkeypatch, capsys):
    source = tmp_path/'design.txt'
    source.write_text("[Columns]\nSampleId\tSampleName\tReads\ns1\tfirst\ta.fq\n")
    monkeypatch.setattr('sys.argv', ['eoulsan', 'design', '--input', str(source), '--show'])

    args = eoulsan.main()

    assert args.subparser_assay == 'design'
    assert 'first' in capsys.readouterr().out
