import itertools
from collections import OrderedDict

from eoulsan.tools.common import EoulsanError, is_valid_name


class DesignError(EoulsanError):
    pass


class Metadata():
    """
    ordered key/value bag, keys and values are trimmed
    """
    def __init__(self):
        self._metadata = OrderedDict()

    def get(self, key, default=None):
        return self._metadata.get(key.strip(), default)

    def set(self, key, value):
        if key is None or value is None:
            raise ValueError("metadata key and value cannot be None")
        if isinstance(value, (list, tuple)):
            value = ','.join(str(v).strip() for v in value)
        self._metadata[key.strip()] = str(value).strip()

    def contains(self, key):
        return key.strip() in self._metadata

    def remove(self, key):
        self._metadata.pop(key.strip(), None)

    def keys(self):
        return list(self._metadata.keys())

    def items(self):
        return list(self._metadata.items())

    def get_as_list(self, key):
        value = self.get(key)
        if value is None:
            return []
        return [v.strip() for v in value.split(',') if v.strip() != '']

    def get_as_boolean(self, key):
        value = self.get(key)
        if value is None:
            return False
        return value.strip().lower() in ('t', 'true', 'y', 'yes')

    def is_empty(self):
        return len(self._metadata) == 0

    def __contains__(self, key):
        return self.contains(key)

    def __len__(self):
        return len(self._metadata)

    def __repr__(self):
        return f'{self.__class__.__name__}({dict(self._metadata)})'


class DesignMetadata(Metadata):
    GENOME_FILE_KEY = 'GenomeFile'
    GFF_FILE_KEY = 'GffFile'
    GTF_FILE_KEY = 'GtfFile'
    ADDITIONAL_ANNOTATION_FILE_KEY = 'AdditionalAnnotationFile'

    FILE_KEYS = [GENOME_FILE_KEY, GFF_FILE_KEY, GTF_FILE_KEY, ADDITIONAL_ANNOTATION_FILE_KEY]


class SampleMetadata(Metadata):
    READS_KEY = 'Reads'
    DESCRIPTION_KEY = 'Description'
    OPERATOR_KEY = 'Operator'
    COMMENT_KEY = 'Comment'
    DATE_KEY = 'Date'
    SERIAL_NUMBER_KEY = 'SerialNumber'
    UUID_KEY = 'UUID'
    REP_TECH_GROUP_KEY = 'RepTechGroup'
    REFERENCE_KEY = 'Reference'
    FASTQ_FORMAT_KEY = 'FastqFormat'
    CONDITION_KEY = 'Condition'

    def get_reads(self):
        return self.get_as_list(self.READS_KEY)

    def set_reads(self, reads):
        self.set(self.READS_KEY, [str(r) for r in reads])

    def is_reference(self):
        return self.get_as_boolean(self.REFERENCE_KEY)


class ExperimentMetadata(Metadata):
    SKIP_KEY = 'skip'
    REFERENCE_KEY = 'reference'

    def is_skip(self):
        return self.get_as_boolean(self.SKIP_KEY)

    def get_reference(self):
        return self.get(self.REFERENCE_KEY)


class ExperimentSampleMetadata(Metadata):
    CONDITION_KEY = 'Condition'
    REP_TECH_GROUP_KEY = 'RepTechGroup'
    REFERENCE_KEY = 'Reference'


class Sample():
    def __init__(self, design, sample_id, number):
        self.design = design
        self.id = sample_id
        self.number = number
        self._name = None
        self.metadata = SampleMetadata()

    @property
    def name(self):
        return self._name if self._name is not None else self.id

    @name.setter
    def name(self, name):
        if name is None:
            raise ValueError("sample name cannot be None")
        self._name = name.strip()

    def __repr__(self):
        return f'Sample(id={self.id}, number={self.number}, name={self.name})'


class ExperimentSample():
    def __init__(self, sample):
        self.sample = sample
        self.metadata = ExperimentSampleMetadata()

    def __repr__(self):
        return f'ExperimentSample(sample={self.sample.id})'


class Experiment():
    def __init__(self, design, experiment_id, number):
        self.design = design
        self.id = experiment_id
        self.number = number
        self._name = None
        self.metadata = ExperimentMetadata()
        self._samples = OrderedDict()

    @property
    def name(self):
        return self._name if self._name is not None else self.id

    @name.setter
    def name(self, name):
        if name is None:
            raise ValueError("experiment name cannot be None")
        self._name = name.strip()

    @property
    def experiment_samples(self):
        return list(self._samples.values())

    @property
    def samples(self):
        return [es.sample for es in self._samples.values()]

    def add_sample(self, sample):
        if sample.design is not self.design:
            raise ValueError(f"The sample is not part of the design of the experiment: {sample.id}")
        if sample.id in self._samples:
            raise ValueError(f"The sample already exists in the experiment: {sample.id}")
        experiment_sample = ExperimentSample(sample)
        self._samples[sample.id] = experiment_sample
        return experiment_sample

    def remove_sample(self, sample):
        if sample.id not in self._samples:
            raise ValueError(f"The sample does not exists in the experiment: {sample.id}")
        del self._samples[sample.id]

    def contains_sample(self, sample):
        return sample.id in self._samples

    def get_experiment_sample(self, sample):
        if sample.id not in self._samples:
            raise KeyError(f"The sample does not exists in the experiment: {sample.id}")
        return self._samples[sample.id]

    def __repr__(self):
        return f'Experiment(id={self.id}, number={self.number}, name={self.name})'


class Design():
    """
    samples, experiments and metadata of an analysis
    """
    _counter = itertools.count(1)

    def __init__(self, name=None):
        self.number = next(Design._counter)
        self.name = name.strip() if name else f'Design{self.number}'
        self.metadata = DesignMetadata()
        self._samples = OrderedDict()
        self._experiments = OrderedDict()
        self._sample_count = 0
        self._experiment_count = 0

    # samples

    @property
    def samples(self):
        return list(self._samples.values())

    def get_sample(self, sample_id):
        sample_id = sample_id.strip()
        if sample_id not in self._samples:
            raise KeyError(f"The sample does not exists in the design: {sample_id}")
        return self._samples[sample_id]

    def add_sample(self, sample_id):
        sample_id = sample_id.strip()
        if sample_id in self._samples:
            raise ValueError(f"The sample already exists in the design: {sample_id}")
        if not is_valid_name(sample_id):
            raise ValueError(f"The id of a sample can only contains letters and digit: {sample_id}")
        self._sample_count += 1
        sample = Sample(self, sample_id, self._sample_count)
        self._samples[sample_id] = sample
        return sample

    def remove_sample(self, sample_id):
        sample = self.get_sample(sample_id)
        for experiment in self.get_experiments_using_sample(sample):
            experiment.remove_sample(sample)
        del self._samples[sample.id]

    def contains_sample(self, sample_id):
        return sample_id.strip() in self._samples

    def contains_sample_name(self, name):
        name = name.strip()
        return any(sample.name == name for sample in self._samples.values())

    def get_sample_names(self):
        return [sample.name for sample in self._samples.values()]

    # experiments

    @property
    def experiments(self):
        return list(self._experiments.values())

    def get_experiment(self, experiment_id):
        experiment_id = experiment_id.strip()
        if experiment_id not in self._experiments:
            raise KeyError(f"The experiment does not exists in the design: {experiment_id}")
        return self._experiments[experiment_id]

    def add_experiment(self, experiment_id):
        experiment_id = experiment_id.strip()
        if experiment_id in self._experiments:
            raise ValueError(f"The experiment already exists in the design: {experiment_id}")
        if not is_valid_name(experiment_id):
            raise ValueError(f"The id of an experiment can only contains letters and digit: {experiment_id}")
        self._experiment_count += 1
        experiment = Experiment(self, experiment_id, self._experiment_count)
        self._experiments[experiment_id] = experiment
        return experiment

    def remove_experiment(self, experiment_id):
        experiment = self.get_experiment(experiment_id)
        del self._experiments[experiment.id]

    def contains_experiment(self, experiment_id):
        return experiment_id.strip() in self._experiments

    def contains_experiment_name(self, name):
        name = name.strip()
        return any(experiment.name == name for experiment in self._experiments.values())

    def get_experiments_using_sample(self, sample):
        return [e for e in self._experiments.values() if e.contains_sample(sample)]

    def __repr__(self):
        return f'Design(name={self.name}, samples={len(self._samples)}, experiments={len(self._experiments)})'
