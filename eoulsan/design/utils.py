import os
from pathlib import Path
import pandas as pd

from eoulsan.tools.common import get_compression_extension
from eoulsan.design.io import (get_all_samples_metadata_keys, get_experiment_sample_all_metadata_keys,
                               read_design)
from eoulsan.design.model import (DesignError, DesignMetadata, SampleMetadata, ExperimentSampleMetadata)


SAMPLE_FILE_KEYS = [SampleMetadata.READS_KEY]


def get_design_table(design):
    """
    samples of the design as a DataFrame, one column per metadata key
    """
    sample_keys = get_all_samples_metadata_keys(design)
    experiment_keys = [(e, get_experiment_sample_all_metadata_keys(e)) for e in design.experiments]

    columns = ['SampleId', 'SampleNumber', 'SampleName'] + sample_keys
    for experiment, keys in experiment_keys:
        columns.extend(f'Exp.{experiment.id}.{key}' for key in keys)

    rows = []
    for sample in design.samples:
        row = [sample.id, sample.number, sample.name]
        row.extend(sample.metadata.get(key, '') for key in sample_keys)
        for experiment, keys in experiment_keys:
            if experiment.contains_sample(sample):
                metadata = experiment.get_experiment_sample(sample).metadata
                row.extend(metadata.get(key, '') for key in keys)
            else:
                row.extend('' for _ in keys)
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)


def show_design(design):
    """
    text dump of the design
    """
    text = f'Design: {design.name} ({design.number})\n'
    text += 'Design metadata:\n'
    for key, value in design.metadata.items():
        text += f'\t{key}={value}\n'
    text += '\n'

    text += 'Experiments:\n'
    for experiment in design.experiments:
        text += f'\tExp.{experiment.id}.name={experiment.name}\n'
        for key, value in experiment.metadata.items():
            text += f'\tExp.{experiment.id}.{key}={value}\n'
        text += '\n'
    text += '\n'

    text += get_design_table(design).to_csv(sep='\t', index=False)
    return text


def check_samples(design):
    """
    False if a read file is used by more than one sample
    """
    sources = set()
    for sample in design.samples:
        for source in sample.metadata.get_reads():
            if source in sources:
                return False
            sources.add(source)
    return True


def check_samples_or_raise(design):
    sources = set()
    for sample in design.samples:
        for source in sample.metadata.get_reads():
            if source in sources:
                raise DesignError(f"The design contains one or more duplicate sample sources: "
                                  f"{source} (sample {sample.id})")
            sources.add(source)
    return True


def check_genomes(design):
    return len(design.metadata.get_as_list(DesignMetadata.GENOME_FILE_KEY)) <= 1


def check_annotations(design):
    return all(len(design.metadata.get_as_list(key)) <= 1
               for key in (DesignMetadata.GFF_FILE_KEY, DesignMetadata.GTF_FILE_KEY))


def read_and_check_design(source):
    design = read_design(source)
    check_samples_or_raise(design)
    if not check_genomes(design):
        raise DesignError("The design contains more than one genome file.")
    if not check_annotations(design):
        raise DesignError("The design contains more than one annotation file.")
    return design


def _remove_sample_metadata(design, key):
    for sample in design.samples:
        sample.metadata.remove(key)


def _remove_experiment_sample_metadata(design, key):
    for experiment in design.experiments:
        for experiment_sample in experiment.experiment_samples:
            experiment_sample.metadata.remove(key)


def obfuscate(design, remove_replicate_info):
    """
    Remove the personal information of the design and rename experiments,
    conditions, technical replicate groups and samples.
    """
    if design is None:
        return

    for key in (SampleMetadata.COMMENT_KEY, SampleMetadata.DATE_KEY, SampleMetadata.OPERATOR_KEY):
        _remove_sample_metadata(design, key)

    if remove_replicate_info:
        for key in (ExperimentSampleMetadata.CONDITION_KEY, ExperimentSampleMetadata.REP_TECH_GROUP_KEY,
                    ExperimentSampleMetadata.REFERENCE_KEY):
            _remove_experiment_sample_metadata(design, key)

    conditions = {}
    rep_tech_groups = {}
    for i, experiment in enumerate(design.experiments, 1):
        experiment.name = f'e{i}'
        for experiment_sample in experiment.experiment_samples:
            metadata = experiment_sample.metadata
            condition = metadata.get(ExperimentSampleMetadata.CONDITION_KEY)
            if condition is not None:
                conditions.setdefault(condition, len(conditions) + 1)
                metadata.set(ExperimentSampleMetadata.CONDITION_KEY, f'c{conditions[condition]}')
            group = metadata.get(ExperimentSampleMetadata.REP_TECH_GROUP_KEY)
            if group is not None:
                rep_tech_groups.setdefault(group, len(rep_tech_groups) + 1)
                metadata.set(ExperimentSampleMetadata.REP_TECH_GROUP_KEY, f'g{rep_tech_groups[group]}')

    for sample in design.samples:
        sample.name = f's{sample.id}'


def _find_link_filename(created_links, filename):
    if filename not in created_links:
        return filename

    compression = get_compression_extension(filename)
    base = filename[:len(filename) - len(compression)]
    base, extension = os.path.splitext(base)
    count = 1
    while True:
        count += 1
        new_name = f'{base}_{count}{extension}{compression}'
        if new_name not in created_links:
            return new_name


def _is_local_path(path):
    return '://' not in path or path.startswith('file://')


def _replace_by_symlinks(values, symlinks_dir, created_links):
    result = []
    for value in values:
        if not _is_local_path(value):
            result.append(value)
            continue

        in_file = Path(value[len('file://'):] if value.startswith('file://') else value)
        link_name = _find_link_filename(created_links, in_file.name)
        out_file = Path(symlinks_dir)/link_name

        if not in_file.exists():
            raise DesignError(f"File not exists: {in_file}")
        if out_file.exists() or out_file.is_symlink():
            raise DesignError(f"The symlink to create, already exists: {out_file}")

        out_file.symlink_to(in_file.absolute())
        created_links.add(link_name)
        result.append(link_name)
    return result


def replace_local_path_by_symlinks(design, symlinks_dir):
    """
    Replace the local files of the design by symbolic links created in symlinks_dir.
    """
    if design is None:
        return

    created_links = set()
    for key in DesignMetadata.FILE_KEYS:
        if design.metadata.contains(key):
            design.metadata.set(key, _replace_by_symlinks(design.metadata.get_as_list(key), symlinks_dir,
                                                          created_links))

    for sample in design.samples:
        for key in SAMPLE_FILE_KEYS:
            if sample.metadata.contains(key):
                sample.metadata.set(key, _replace_by_symlinks(sample.metadata.get_as_list(key), symlinks_dir,
                                                              created_links))


def get_condition(experiment, sample):
    metadata = experiment.get_experiment_sample(sample).metadata
    if metadata.contains(ExperimentSampleMetadata.CONDITION_KEY):
        return metadata.get(ExperimentSampleMetadata.CONDITION_KEY)
    return sample.metadata.get(SampleMetadata.CONDITION_KEY)


def get_rep_tech_group(experiment, sample):
    metadata = experiment.get_experiment_sample(sample).metadata
    if metadata.contains(ExperimentSampleMetadata.REP_TECH_GROUP_KEY):
        return metadata.get(ExperimentSampleMetadata.REP_TECH_GROUP_KEY)
    return sample.metadata.get(SampleMetadata.REP_TECH_GROUP_KEY)


def get_reference(experiment, sample):
    metadata = experiment.get_experiment_sample(sample).metadata
    if metadata.contains(ExperimentSampleMetadata.REFERENCE_KEY):
        return metadata.get(ExperimentSampleMetadata.REFERENCE_KEY)
    return sample.metadata.get(SampleMetadata.REFERENCE_KEY)


def is_skipped(experiment):
    return experiment.metadata.is_skip()


def contains_reference_field(experiment):
    for experiment_sample in experiment.experiment_samples:
        if experiment_sample.metadata.contains(ExperimentSampleMetadata.REFERENCE_KEY):
            return True
        if experiment_sample.sample.metadata.contains(SampleMetadata.REFERENCE_KEY):
            return True
    return False


def reference_value_to_int(value, experiment_reference):
    """
    1 for the reference of the experiment or a true value, the value itself
    for an integer and 0 otherwise
    """
    if value is None:
        return 0
    value = value.strip()
    if value == experiment_reference:
        return 1
    if value.lower() in ('t', 'true', 'y', 'yes'):
        return 1
    try:
        return int(value)
    except ValueError:
        return 0
