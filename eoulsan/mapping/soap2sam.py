import re
import pysam
from xopen import xopen


MISMATCH_PATTERN = re.compile(r'^([AaCcGgTt])->(\d+)')


def remove_forbidden_characters(line):
    return ''.join(c for c in line if c == '\t' or 32 < ord(c) < 127)


def compute_md(sequence_length, mismatch_fields):
    mismatches = []
    for field in mismatch_fields:
        m = MISMATCH_PATTERN.match(field)
        if m:
            mismatches.append((int(m.group(2)), m.group(1)))
    mismatches.sort(key=lambda x: x[0])

    md = ''
    a = 0
    for pos, base in mismatches:
        md += f'{pos - a}{base}'
        a = pos + 1
    md += str(sequence_length - a)
    return md


def convert_line(line, paired):
    """
    Convert a SOAP alignment line to the 13 first fields of a SAM line.
    None is returned for the lines to skip.
    """
    if line is None:
        return None
    s = remove_forbidden_characters(line)
    tab = s.split('\t')
    if len(tab) < 9 or s[0] in ' \t':
        return None

    result = [''] * 13
    name = tab[0]
    result[0] = name[:-2] if name.endswith('/1') or name.endswith('/2') else name

    flag = 0
    if paired:
        flag |= 1 | 1 << (6 if tab[4] == 'a' else 7)
        flag |= 2

    result[9] = tab[1]
    result[10] = tab[2][:len(tab[1])]
    result[5] = f'{len(result[9])}M'
    result[2] = tab[7]
    result[3] = tab[8]
    if tab[6] == '-':
        flag |= 0x10
    result[1] = str(flag)
    result[4] = '30' if int(tab[3]) == 1 else '0'
    result[6] = '*'
    result[7] = '0'
    result[8] = '0'
    result[11] = f'NM:i:{tab[9] if len(tab) > 9 else 0}'
    if len(tab) > 9:
        result[12] = 'MD:Z:' + compute_md(len(tab[1]), tab[10:])
    else:
        result[12] = 'MD:Z:'
    return result


def mating(s1, s2):
    """
    set the mate fields of two alignments of the same pair
    """
    isize = 0
    f1 = int(s1[1])
    f2 = int(s2[1])
    p1 = int(s1[3])
    p2 = int(s2[3])

    if s1[2] != '*' and s1[2] == s2[2]:
        x1 = p1 if (f1 & 0x10) == 0 else p1 + len(s1[9])
        x2 = p2 if (f2 & 0x10) == 0 else p2 + len(s2[9])
        isize = x2 - x1

    if s2[2] == '*':
        f1 |= 0x8
    else:
        s1[6] = '=' if s2[2] == s1[2] else s2[2]
        s1[7] = s2[3]
        s1[8] = str(isize)
        if f2 & 0x10:
            f1 |= 0x20

    if s1[2] == '*':
        f2 |= 0x8
    else:
        s2[6] = '=' if s1[2] == s2[2] else s1[2]
        s2[7] = s1[3]
        s2[8] = str(-isize)
        if f1 & 0x10:
            f2 |= 0x20

    s1[1] = str(f1)
    s2[1] = str(f2)


def genome_sequence_lengths(genome_file):
    with pysam.FastxFile(str(genome_file)) as fh:
        return [(entry.name, len(entry.sequence)) for entry in fh]


def index_sequence_lengths(ann_file):
    """
    names and lengths of the sequences of a BWT index, read from its .ann file
    """
    with open(ann_file) as fh:
        lines = [line.split() for line in fh if line.strip()]
    sequences = []
    for header, position in zip(lines[1::2], lines[2::2]):
        sequences.append((header[1], int(position[1])))
    return sequences


class SOAP2SAM():
    """
    Convert the alignment and unmap files of SOAP to a SAM file.
    """
    def __init__(self, aln_file, unmap_file, sam_file, genome_file=None, sequences=None):
        if aln_file is None:
            raise ValueError("aln_file is None")
        if unmap_file is None:
            raise ValueError("unmap_file is None")
        if sam_file is None:
            raise ValueError("sam_file is None")
        self.aln_file = aln_file
        self.unmap_file = unmap_file
        self.sam_file = sam_file
        self.genome_file = genome_file
        self.sequences = sequences

    def write_header(self, out):
        out.write('@HD\tVN:1.0\tSO:unsorted\n')
        sequences = self.sequences
        if sequences is None and self.genome_file:
            sequences = genome_sequence_lengths(self.genome_file)
        for name, length in sequences or []:
            out.write(f'@SQ\tSN:{name}\tLN:{length}\n')

    def convert(self, paired=False):
        with open(self.sam_file, 'w') as out:
            self.write_header(out)

            last = None
            with xopen(self.aln_file) as fh:
                for line in fh:
                    current = convert_line(line.rstrip('\r\n'), paired)
                    if current is None:
                        continue
                    if last is not None and last[0] == current[0]:
                        if paired:
                            mating(last, current)
                        out.write('\t'.join(last) + '\n')
                        out.write('\t'.join(current) + '\n')
                        last = None
                    else:
                        if last is not None:
                            out.write('\t'.join(last) + '\n')
                        last = current
            if last is not None:
                out.write('\t'.join(last) + '\n')

            with pysam.FastxFile(str(self.unmap_file)) as fh:
                for entry in fh:
                    out.write(f'{entry.name}\t4\t*\t0\t0\t*\t*\t0\t0\t{entry.sequence}\t*\t\n')
        return self.sam_file
