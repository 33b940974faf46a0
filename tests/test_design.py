import argparse
import io

import pytest

from eoulsan.design.model import Design, DesignError
from eoulsan.design.io import Eoulsan2DesignWriter, is_eoulsan1_design, read_design
from eoulsan.design import utils
from eoulsan.design.builder import DesignBuilder, define_sample_name, parse_read_id
from eoulsan.design import design as design_step
from eoulsan.tools.common import EoulsanError, to_valid_name


DESIGN_V2 = (
    "[Header]\n"
    "DesignFormatVersion=2\n"
    "GenomeFile=genome.fasta\n"
    "\n"
    "[Experiments]\n"
    "Exp.1.name=exp1\n"
    "Exp.1.skip=false\n"
    "Exp.1.reference=WT\n"
    "\n"
    "[Columns]\n"
    "SampleId\tSampleName\tReads\tExp.1.Condition\tExp.1.Reference\n"
    "s1\tsample 1\ta_1.fq,a_2.fq\tWT\ttrue\n"
    "s2\tsample 2\tb.fq\tKO\tfalse\n"
)

DESIGN_V1 = (
    "SampleNumber\tName\tFileName\tGenome\tCondition\tExperiment\n"
    "1\tSample-1\ta.fq\tgenome.fa\tWT\texp-A\n"
    "2\tSample-2\tb.fq\tgenome.fa\tKO\texp-A\n"
)


class TestDesignModel:
    def test_add_and_remove_sample(self):
        design = Design()
        s1 = design.add_sample('s1')
        experiment = design.add_experiment('e1')
        experiment.add_sample(s1)

        design.remove_sample('s1')

        assert not design.contains_sample('s1')
        assert experiment.samples == []

    def test_duplicate_sample(self):
        design = Design()
        design.add_sample('s1')
        with pytest.raises(ValueError):
            design.add_sample('s1')

    def test_invalid_sample_id(self):
        with pytest.raises(ValueError):
            Design().add_sample('sample 1')

    def test_sample_name_defaults_to_id(self):
        sample = Design().add_sample('s1')
        assert sample.name == 's1'
        sample.name = ' first '
        assert sample.name == 'first'

    def test_sample_numbers(self):
        design = Design()
        assert [design.add_sample(i).number for i in ('a', 'b', 'c')] == [1, 2, 3]

    def test_metadata_list_and_boolean(self):
        sample = Design().add_sample('s1')
        sample.metadata.set_reads(['a.fq', 'b.fq'])
        sample.metadata.set('Reference', 'Yes')
        assert sample.metadata.get_reads() == ['a.fq', 'b.fq']
        assert sample.metadata.is_reference()

    def test_experiment_sample_from_other_design(self):
        experiment = Design().add_experiment('e1')
        with pytest.raises(ValueError):
            experiment.add_sample(Design().add_sample('s1'))


class TestDesignReaders:
    def test_read_v2(self):
        design = read_design(io.StringIO(DESIGN_V2))

        assert design.metadata.get('GenomeFile') == 'genome.fasta'
        assert [s.id for s in design.samples] == ['s1', 's2']
        s1 = design.get_sample('s1')
        assert s1.name == 'sample 1'
        assert s1.metadata.get_reads() == ['a_1.fq', 'a_2.fq']

        experiment = design.get_experiment('1')
        assert experiment.name == 'exp1'
        assert not utils.is_skipped(experiment)
        assert utils.get_condition(experiment, s1) == 'WT'
        assert utils.contains_reference_field(experiment)

    def test_read_v2_file(self, tmp_path):
        path = tmp_path/'design.txt'
        path.write_text(DESIGN_V2)
        assert not is_eoulsan1_design(str(path))
        assert len(read_design(str(path)).samples) == 2

    def test_unsupported_version(self):
        with pytest.raises(DesignError):
            read_design(io.StringIO(DESIGN_V2.replace('DesignFormatVersion=2', 'DesignFormatVersion=3')))

    def test_missing_sample_name_column(self):
        text = "[Columns]\nSampleId\tReads\ns1\ta.fq\n"
        with pytest.raises(DesignError):
            read_design(io.StringIO(text))

    def test_wrong_field_count(self):
        text = "[Columns]\nSampleId\tSampleName\tReads\ns1\tname\n"
        with pytest.raises(DesignError):
            read_design(io.StringIO(text))

    def test_read_v1(self):
        assert is_eoulsan1_design(io.StringIO(DESIGN_V1))
        design = read_design(io.StringIO(DESIGN_V1))

        assert [s.id for s in design.samples] == ['Sample1', 'Sample2']
        sample = design.get_sample('Sample1')
        assert sample.name == 'Sample-1'
        assert sample.metadata.get_reads() == ['a.fq']
        assert sample.metadata.get('Condition') == 'WT'
        assert design.metadata.get('GenomeFile') == 'genome.fa'
        assert design.get_experiment('expA').samples == design.samples

    def test_write_then_read(self):
        design = read_design(io.StringIO(DESIGN_V2))
        text = Eoulsan2DesignWriter.to_text(design)

        assert text.startswith('[Header]\r\nDesignFormatVersion=2\r\n')
        assert 'SampleId\tSampleName\tReads\tExp.1.Condition\tExp.1.Reference' in text

        again = read_design(io.StringIO(text))
        assert [s.name for s in again.samples] == ['sample 1', 'sample 2']
        assert again.get_experiment('1').metadata.get('reference') == 'WT'


class TestDesignUtils:
    def test_check_samples(self):
        design = read_design(io.StringIO(DESIGN_V2))
        assert utils.check_samples(design)

        design.get_sample('s2').metadata.set_reads(['a_1.fq'])
        assert not utils.check_samples(design)
        with pytest.raises(DesignError):
            utils.check_samples_or_raise(design)

    def test_check_genomes(self):
        design = Design()
        design.metadata.set('GenomeFile', 'a.fa,b.fa')
        assert not utils.check_genomes(design)
        assert utils.check_annotations(design)

    def test_check_annotations(self):
        design = Design()
        design.metadata.set('GffFile', 'a.gff')
        design.metadata.set('GtfFile', 'a.gtf')
        assert utils.check_annotations(design)
        design.metadata.set('GtfFile', 'a.gtf,b.gtf')
        assert not utils.check_annotations(design)

    def test_obfuscate(self):
        design = read_design(io.StringIO(DESIGN_V2))
        utils.obfuscate(design, False)

        assert design.get_experiment('1').name == 'e1'
        assert [s.name for s in design.samples] == ['ss1', 'ss2']
        s1 = design.get_sample('s1')
        assert utils.get_condition(design.get_experiment('1'), s1) == 'c1'

    def test_obfuscate_remove_replicate_info(self):
        design = read_design(io.StringIO(DESIGN_V2))
        utils.obfuscate(design, True)
        assert not utils.contains_reference_field(design.get_experiment('1'))

    def test_replace_local_path_by_symlinks(self, tmp_path):
        data = tmp_path/'data'
        data.mkdir()
        (data/'reads.fq').write_text('@r\nA\n+\nI\n')
        other = tmp_path/'other'
        other.mkdir()
        (other/'reads.fq').write_text('@r\nA\n+\nI\n')
        links = tmp_path/'links'
        links.mkdir()

        design = Design()
        design.add_sample('s1').metadata.set_reads([str(data/'reads.fq')])
        design.add_sample('s2').metadata.set_reads([str(other/'reads.fq'), 'http://host/reads.fq'])

        utils.replace_local_path_by_symlinks(design, links)

        assert design.get_sample('s1').metadata.get_reads() == ['reads.fq']
        assert design.get_sample('s2').metadata.get_reads() == ['reads_2.fq', 'http://host/reads.fq']
        assert (links/'reads_2.fq').resolve() == (other/'reads.fq').resolve()

    @pytest.mark.parametrize('value, expected', [('WT', 1), ('true', 1), ('3', 3), ('KO', 0), (None, 0)])
    def test_reference_value_to_int(self, value, expected):
        assert utils.reference_value_to_int(value, 'WT') == expected

    def test_design_table(self):
        table = utils.get_design_table(read_design(io.StringIO(DESIGN_V2)))
        assert list(table['SampleId']) == ['s1', 's2']
        assert list(table['Exp.1.Condition']) == ['WT', 'KO']


class TestDesignBuilder:
    def test_parse_read_id(self):
        assert parse_read_id('r1/2') == ('r1', 2)
        prefix, member = parse_read_id('M00:12:FC1:1:1101:100:200 2:N:0:ACGT')
        assert member == 2
        assert prefix == 'M00\t1\t1101\t100\t200'

    def test_define_sample_name(self):
        assert define_sample_name('liver_S1_L001_R1_001.fastq.gz') == 'liver'
        assert define_sample_name('liver.fq') == 'liver'

    def test_paired_end_design(self, tmp_path, write_fastq):
        r1 = write_fastq('liver_R1.fastq', [('read1/1', 'ACGT', '####')])
        r2 = write_fastq('liver_R2.fastq', [('read1/2', 'TTTT', '####')])
        genome = tmp_path/'genome.fasta'
        genome.write_text('>chr1\nACGT\n')

        builder = DesignBuilder()
        builder.add_files([r2, r1, genome])
        design = builder.get_design(paired_end=True)

        assert len(design.samples) == 1
        sample = design.samples[0]
        assert sample.id == to_valid_name('liver_R2')
        assert sample.metadata.get_reads() == [str(r1), str(r2)]
        assert sample.metadata.get('FastqFormat') == 'fastq-sanger'
        assert design.metadata.get('GenomeFile') == str(genome)

    def test_single_end_design(self, write_fastq):
        r1 = write_fastq('liver_R1.fastq', [('read1/1', 'ACGT', '####')])
        r2 = write_fastq('liver_R2.fastq', [('read1/2', 'TTTT', '####')])

        builder = DesignBuilder()
        builder.add_files([r1, r2])
        design = builder.get_design(paired_end=False)

        assert [s.id for s in design.samples] == ['liverR1a', 'liverR1b']

    def test_unknown_file_type(self, tmp_path):
        path = tmp_path/'notes.doc'
        path.write_text('x')
        with pytest.raises(DesignError):
            DesignBuilder().add_file(path)


class TestDesignStep:
    @staticmethod
    def parse(*argv):
        parser = design_step.get_opts_design(argparse.ArgumentParser())
        return parser.parse_args(list(argv))

    def test_obfuscate_input(self, tmp_path):
        source = tmp_path/'design.txt'
        source.write_text(DESIGN_V2)
        output = tmp_path/'obfuscated.txt'
        args = self.parse('--input', str(source), '--obfuscate', '--output', str(output))

        design_step.design(args)

        again = read_design(str(output))
        assert [s.name for s in again.samples] == ['ss1', 'ss2']

    def test_existing_output(self, tmp_path):
        source = tmp_path/'design.txt'
        source.write_text(DESIGN_V2)
        args = self.parse('--input', str(source), '--output', str(source))
        with pytest.raises(EoulsanError, match='already exists'):
            design_step.design(args)

    def test_show(self, tmp_path, capsys):
        source = tmp_path/'design.txt'
        source.write_text(DESIGN_V2)
        args = self.parse('--input', str(source), '--show')

        design_step.design(args)

        assert 'Exp.1.name=exp1' in capsys.readouterr().out

    def test_nothing_to_read(self):
        args = self.parse('--show')
        with pytest.raises(EoulsanError, match='No design to read'):
            design_step.design(args)
