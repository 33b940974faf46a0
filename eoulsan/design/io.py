import io
import os
import sys
from xopen import xopen

from eoulsan.tools.common import to_valid_name
from eoulsan.design.model import Design, DesignError, DesignMetadata, SampleMetadata


HEADER_SECTION = '[Header]'
EXPERIMENT_SECTION = '[Experiments]'
COLUMN_SECTION = '[Columns]'

DESIGN_FORMAT_VERSION_METADATA_KEY = 'DesignFormatVersion'
FORMAT_VERSION = '2'
SAMPLE_ID_FIELDNAME = 'SampleId'
SAMPLE_NAME_FIELDNAME = 'SampleName'
EXPERIMENT_FIELD_PREFIX = 'Exp.'
EXPERIMENT_NAME_SUFFIX = 'name'

V1_SAMPLE_NUMBER_FIELD = 'SampleNumber'
V1_SAMPLE_NAME_FIELD = 'Name'
V1_FILENAME_FIELD = 'FileName'
V1_READS_FIELD = 'Reads'
V1_EXPERIMENT_FIELD = 'Experiment'

V1_DESIGN_METADATA_FIELDS = {
    'Genome': DesignMetadata.GENOME_FILE_KEY,
    'Annotation': DesignMetadata.GFF_FILE_KEY,
    'AdditionalAnnotation': DesignMetadata.ADDITIONAL_ANNOTATION_FILE_KEY,
    DesignMetadata.GENOME_FILE_KEY: DesignMetadata.GENOME_FILE_KEY,
    DesignMetadata.GFF_FILE_KEY: DesignMetadata.GFF_FILE_KEY,
    DesignMetadata.GTF_FILE_KEY: DesignMetadata.GTF_FILE_KEY,
    DesignMetadata.ADDITIONAL_ANNOTATION_FILE_KEY: DesignMetadata.ADDITIONAL_ANNOTATION_FILE_KEY,
}

V1_SAMPLE_METADATA_FIELDS = {
    V1_READS_FIELD: SampleMetadata.READS_KEY,
    'FastqFormat': SampleMetadata.FASTQ_FORMAT_KEY,
    'Condition': SampleMetadata.CONDITION_KEY,
    'RepTechGroup': SampleMetadata.REP_TECH_GROUP_KEY,
    'Reference': SampleMetadata.REFERENCE_KEY,
    'UUID': SampleMetadata.UUID_KEY,
    'Operator': SampleMetadata.OPERATOR_KEY,
}

NEWLINE = '\r\n'


def _open_text(source):
    if isinstance(source, (str, os.PathLike)):
        return xopen(str(source), 'rt')
    return source


def _read_lines(source):
    fh = _open_text(source)
    try:
        for line in fh:
            yield line.rstrip('\r\n')
    finally:
        if fh is not source:
            fh.close()


class Eoulsan2DesignReader():
    """
    Read a design file in the version 2 format.

    The file has a header made of key=value lines, then a tab separated
    column section starting with the SampleId and SampleName columns.
    """
    def __init__(self, source):
        self.source = source

    def read(self):
        design = Design()
        header = True
        column_names = []
        buffer = ''

        for line in _read_lines(self.source):
            if header:
                fields = [f.strip() for f in line.split('\t') if f.strip() != '']
                if len(fields) == 1:
                    line = fields[0]

            # continued lines
            if header and line.endswith('\\'):
                buffer += line[:-1]
                continue

            line = buffer + line
            buffer = ''
            trimmed = line.strip()

            if trimmed == '' or trimmed.startswith('#') or trimmed.startswith('['):
                continue

            if header and '\t' in line:
                header = False

            if header:
                self._parse_header(design, line)
            else:
                self._parse_columns(design, column_names, line)

        return design

    def _parse_header(self, design, line):
        if '=' not in line:
            raise DesignError(f"Found a field with two values in the design file header in line: {line}")
        key, value = line.split('=', 1)
        key = key.strip()
        value = value.strip()

        if key == '':
            raise DesignError(f"Found an empty field name in design file header in line: {line}")
        if value == '':
            raise DesignError(f"Found an empty field value in design file header in line: {line}")

        if key.startswith(EXPERIMENT_FIELD_PREFIX):
            self._read_experiment_metadata(design, key, value)
        else:
            self._read_design_metadata(design, key, value)

    @staticmethod
    def _split_experiment_key(key):
        fields = [f.strip() for f in key.split('.') if f.strip() != '']
        if len(fields) != 3:
            raise DesignError("The experiment key is invalid.")
        return fields[1], fields[2]

    def _read_experiment_metadata(self, design, key, value):
        experiment_id, experiment_key = self._split_experiment_key(key)
        if not design.contains_experiment(experiment_id):
            design.add_experiment(experiment_id)
        experiment = design.get_experiment(experiment_id)

        if experiment_key == EXPERIMENT_NAME_SUFFIX:
            experiment.name = value
            return

        if experiment.metadata.contains(experiment_key):
            raise DesignError(f'There is two or more metadata with the same key "{key}" '
                              f'in the experiment: {experiment_id} file header.')
        experiment.metadata.set(experiment_key, value)

    @staticmethod
    def _read_design_metadata(design, key, value):
        if key == DESIGN_FORMAT_VERSION_METADATA_KEY:
            if value.strip() != FORMAT_VERSION:
                raise DesignError(f"Unsupported design format version: {value}")
            return

        if design.metadata.contains(key):
            raise DesignError(f'There is two or more metadata with the same key "{key}" in design file header.')
        design.metadata.set(key, value)

    def _parse_columns(self, design, column_names, line):
        fields = [f.strip() for f in line.split('\t')]

        if not column_names:
            column_names.extend(fields)
            if SAMPLE_ID_FIELDNAME not in column_names:
                raise DesignError(f'Invalid file format: No "{SAMPLE_ID_FIELDNAME}" field found.')
            if column_names.index(SAMPLE_ID_FIELDNAME) != 0:
                raise DesignError(f'Invalid file format: The "{SAMPLE_ID_FIELDNAME}" field is not the first field.')
            if SAMPLE_NAME_FIELDNAME not in column_names:
                raise DesignError(f'Invalid file format: No "{SAMPLE_NAME_FIELDNAME}" field found.')
            if column_names.index(SAMPLE_NAME_FIELDNAME) != 1:
                raise DesignError(f'Invalid file format: The "{SAMPLE_NAME_FIELDNAME}" field is not the second field.')
            return

        if len(fields) != len(column_names):
            raise DesignError(f"Invalid file format: Found {len(fields)} fields whereas "
                              f"{len(column_names)} are required in line: {line}")

        sample = design.add_sample(fields[0])
        sample.name = fields[1]
        for experiment in design.experiments:
            experiment.add_sample(sample)

        for column_name, value in zip(column_names[2:], fields[2:]):
            if column_name.startswith(EXPERIMENT_FIELD_PREFIX):
                self._read_experiment_sample_metadata(design, sample, column_name, value)
            else:
                if sample.metadata.contains(column_name):
                    raise DesignError(f'There is two or more metadata with the same key "{column_name}" '
                                      'in design file header.')
                sample.metadata.set(column_name, value)

    def _read_experiment_sample_metadata(self, design, sample, column_name, value):
        experiment_id, experiment_key = self._split_experiment_key(column_name)
        if not design.contains_experiment(experiment_id):
            raise DesignError(f"The experiment {experiment_id} doesn't exist.")

        experiment = design.get_experiment(experiment_id)
        if not experiment.contains_sample(sample):
            experiment.add_sample(sample)

        metadata = experiment.get_experiment_sample(sample).metadata
        if metadata.contains(experiment_key):
            raise DesignError(f'There is two or more metadata with the same key "{experiment_key}" '
                              'in design file header.')
        metadata.set(experiment_key, value)


class Eoulsan1DesignReader():
    """
    Read a design file in the legacy tab separated format.
    """
    def __init__(self, source):
        self.source = source

    def read(self):
        design = Design()
        field_names = []
        name_index = experiment_index = -1

        for line in _read_lines(self.source):
            if line.strip() == '' or line.strip().startswith('#'):
                continue
            fields = line.split('\t')

            if not field_names:
                id_index = -1
                for i, field in enumerate(fields):
                    field = field.strip()
                    if field == '':
                        raise DesignError("Found an empty field name in design file header.")
                    if field == V1_FILENAME_FIELD:
                        field = V1_READS_FIELD
                    if field in field_names:
                        raise DesignError(f'There is two or more field "{field}" in design file header.')
                    field_names.append(field)
                    if field == V1_SAMPLE_NUMBER_FIELD:
                        id_index = i
                    elif field == V1_SAMPLE_NAME_FIELD:
                        name_index = i
                    elif field == V1_EXPERIMENT_FIELD:
                        experiment_index = i

                if id_index != 0:
                    raise DesignError(f'Invalid file format: The "{V1_SAMPLE_NUMBER_FIELD}" field is not the first field.')
                if name_index != 1:
                    raise DesignError(f'Invalid file format: The "{V1_SAMPLE_NAME_FIELD}" field is not the second field.')
                continue

            if len(fields) != len(field_names):
                raise DesignError(f"Invalid file format: Found {len(fields)} fields whereas "
                                  f"{len(field_names)} are required in line: {line}")

            sample = None
            for i, value in enumerate(fields):
                value = value.strip()
                field_name = field_names[i]
                if i == 0:
                    continue
                if i == name_index:
                    sample = design.add_sample(to_valid_name(value))
                    sample.name = value
                elif i == experiment_index:
                    experiment_id = to_valid_name(value)
                    if not design.contains_experiment(experiment_id):
                        experiment = design.add_experiment(experiment_id)
                        experiment.name = value
                    design.get_experiment(experiment_id).add_sample(sample)
                elif field_name in V1_DESIGN_METADATA_FIELDS:
                    key = V1_DESIGN_METADATA_FIELDS[field_name]
                    if not design.metadata.contains(key):
                        design.metadata.set(key, value)
                else:
                    sample.metadata.set(V1_SAMPLE_METADATA_FIELDS.get(field_name, field_name), value)

        if V1_READS_FIELD not in field_names:
            raise DesignError("Invalid file format: No Reads field")

        return design


def get_all_samples_metadata_keys(design):
    """
    sample metadata keys of all the samples, in first seen order
    """
    keys = []
    for sample in design.samples:
        for key in sample.metadata.keys():
            if key not in keys:
                keys.append(key)
    return keys


def get_experiment_sample_all_metadata_keys(experiment):
    keys = []
    for experiment_sample in experiment.experiment_samples:
        for key in experiment_sample.metadata.keys():
            if key not in keys:
                keys.append(key)
    return keys


class Eoulsan2DesignWriter():
    """
    Write a design in the version 2 format.
    """
    def __init__(self, destination):
        self.destination = destination

    def write(self, design):
        if isinstance(self.destination, (str, os.PathLike)):
            with open(self.destination, 'w', newline='') as fh:
                fh.write(self.to_text(design))
        else:
            self.destination.write(self.to_text(design))

    @staticmethod
    def to_text(design):
        lines = [HEADER_SECTION, f'{DESIGN_FORMAT_VERSION_METADATA_KEY}={FORMAT_VERSION}']
        for key, value in design.metadata.items():
            lines.append(f'{key}={value}')
        lines.append('')

        if design.experiments:
            lines.append(EXPERIMENT_SECTION)
        for experiment in design.experiments:
            lines.append(f'{EXPERIMENT_FIELD_PREFIX}{experiment.id}.{EXPERIMENT_NAME_SUFFIX}={experiment.name}')
            for key, value in experiment.metadata.items():
                lines.append(f'{EXPERIMENT_FIELD_PREFIX}{experiment.id}.{key}={value}')
            lines.append('')

        lines.append(COLUMN_SECTION)
        sample_keys = get_all_samples_metadata_keys(design)
        experiment_keys = [(e, get_experiment_sample_all_metadata_keys(e)) for e in design.experiments]

        header = [SAMPLE_ID_FIELDNAME, SAMPLE_NAME_FIELDNAME] + sample_keys
        for experiment, keys in experiment_keys:
            header.extend(f'{EXPERIMENT_FIELD_PREFIX}{experiment.id}.{key}' for key in keys)
        lines.append('\t'.join(header))

        for sample in design.samples:
            row = [sample.id, sample.name]
            row.extend(sample.metadata.get(key, '') for key in sample_keys)
            for experiment, keys in experiment_keys:
                if experiment.contains_sample(sample):
                    metadata = experiment.get_experiment_sample(sample).metadata
                    row.extend(metadata.get(key, '') for key in keys)
                else:
                    row.extend('' for _ in keys)
            lines.append('\t'.join(row))

        return NEWLINE.join(lines) + NEWLINE


def is_eoulsan1_design(source):
    """
    A version 1 design file starts with the SampleNumber column.
    """
    for line in _read_lines(source):
        trimmed = line.strip()
        if trimmed == '' or trimmed.startswith('#'):
            continue
        return line.split('\t')[0].strip() == V1_SAMPLE_NUMBER_FIELD
    return False


def read_design(source):
    """
    Read a design file in the version 1 or version 2 format.
    """
    if not isinstance(source, (str, os.PathLike)):
        source = io.StringIO(source.read())
        v1 = is_eoulsan1_design(source)
        source.seek(0)
    else:
        v1 = is_eoulsan1_design(source)

    if v1:
        return Eoulsan1DesignReader(source).read()
    return Eoulsan2DesignReader(source).read()


def write_design(design, destination=None):
    Eoulsan2DesignWriter(destination if destination else sys.stdout).write(design)
