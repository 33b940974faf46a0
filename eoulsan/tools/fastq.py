import pysam


class FastqFormat():
    """
    quality encoding of a fastq file
    """
    def __init__(self, name, alias, char_min, char_max):
        self.name = name
        self.alias = alias
        self.char_min = char_min
        self.char_max = char_max

    def __repr__(self):
        return self.name

    def __str__(self):
        return self.name


FASTQ_SANGER = FastqFormat('fastq-sanger', ['sanger', 'fastq-illumina-1.8', 'illumina-1.8', '1.8'], 33, 126)
FASTQ_SOLEXA = FastqFormat('fastq-solexa', ['solexa', 'fastq-solexa-1.0', 'solexa-1.0', '1.0'], 59, 126)
FASTQ_ILLUMINA = FastqFormat('fastq-illumina-1.3', ['fastq-illumina', 'illumina', 'illumina-1.3', '1.3'], 64, 126)
FASTQ_ILLUMINA_1_5 = FastqFormat('fastq-illumina-1.5', ['illumina-1.5', '1.5'], 66, 126)

FASTQ_FORMATS = [FASTQ_SANGER, FASTQ_SOLEXA, FASTQ_ILLUMINA, FASTQ_ILLUMINA_1_5]


def get_format_from_name(name):
    """
    Get a format from its name or one of its alias. None is returned for an unknown name.
    """
    if name is None:
        return None
    name = name.lower().strip()
    for fastq_format in FASTQ_FORMATS:
        if name == fastq_format.name or name in fastq_format.alias:
            return fastq_format
    return None


def identify_format(qualities):
    """
    Identify the quality encoding from an iterable of quality strings.
    """
    lower = None
    higher = None
    for quality in qualities:
        if not quality:
            continue
        codes = [ord(c) for c in quality]
        lower = min(codes) if lower is None else min(lower, min(codes))
        higher = max(codes) if higher is None else max(higher, max(codes))

    if lower is None:
        return None
    if lower < FASTQ_SANGER.char_min or higher > FASTQ_SANGER.char_max:
        return None
    if lower < FASTQ_SOLEXA.char_min:
        return FASTQ_SANGER
    if lower < FASTQ_ILLUMINA.char_min:
        return FASTQ_SOLEXA
    if lower < FASTQ_ILLUMINA_1_5.char_min:
        return FASTQ_ILLUMINA
    return FASTQ_ILLUMINA_1_5


def identify_fastq_file(fastq, max_entries=10000):
    def qualities():
        with pysam.FastxFile(str(fastq)) as fh:
            for i, entry in enumerate(fh):
                if max_entries > 0 and i >= max_entries:
                    break
                yield entry.quality

    return identify_format(qualities())
