"""
HDF5 output.

Layout of one output file:

    /<source>/initial/<species>      (n, 7) [px, py, pz, x, y, z, weight]
    /<source>/final/<species>        (n, 7)
    /<source>/tracks/<k>/...         position, momentum, time, gamma
    /<source>/events/<event_id>      every particle of the event (PARTICLE_DTYPE)
    /<source>/histograms/<name>      counts, with bin_edges/entries attributes

Momenta are written in MeV/c, positions in m, times in s and energies in MeV.
"""

from typing import Optional

import h5py
import numpy as np

from qed_cascade.core.units import UnitsSystem
from qed_cascade.transport.engine import RunSummary


class HDF5Output:
    """
    Thin wrapper around an h5py file.

    Usage:
        with HDF5Output('run.h5') as out:
            out.add_array(data, 'source_0/final/electron')
    """

    def __init__(self, file_name: str, append: bool = False):
        self.file_name = file_name
        self.file = h5py.File(file_name, 'a' if append else 'w')

    def add_array(self, data, name: str, attrs: Optional[dict] = None):
        """Write an array dataset, replacing an existing one of the same name."""
        if name in self.file:
            del self.file[name]
        dataset = self.file.create_dataset(name, data=np.asarray(data))
        for key, value in (attrs or {}).items():
            dataset.attrs[key] = value
        return dataset

    def set_attribute(self, group: str, key: str, value):
        self.file.require_group(group).attrs[key] = value

    def close(self):
        if self.file:
            self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class OutputManager:
    """Converts run summaries to physical units and writes them."""

    def __init__(self, output: HDF5Output, units: Optional[UnitsSystem] = None):
        self.output = output
        self.units = units if units is not None else UnitsSystem('SI')

    def phase_space_to_physical(self, data: np.ndarray) -> np.ndarray:
        """[p (m c), x (ħ/mc), w] -> [p (MeV/c), x (m), w]."""
        physical = np.array(data, dtype=np.float64, copy=True).reshape(-1, 7)
        physical[:, 0:3] *= self.units.ref_energy_mev
        physical[:, 3:6] = self.units.to_physical(physical[:, 3:6], 'length')
        return physical

    def write_summary(self, summary: RunSummary, group: str):
        """Write phase space, full events, tracks and histograms of one source."""
        self.output.set_attribute(group, 'n_events', summary.n_events)
        self.output.set_attribute(group, 'total_particles', summary.total_particles)
        self.output.set_attribute(group, 'radiated_energy',
                                  float(summary.radiated_energy * self.units.ref_energy_mev))

        for which, data in (('initial', summary.initial), ('final', summary.final)):
            for species, rows in data.items():
                self.output.add_array(self.phase_space_to_physical(rows),
                                      f'{group}/{which}/{species}',
                                      attrs={'columns': 'px,py,pz,x,y,z,weight'})

        for event in summary.events:
            if event.records is not None:
                self.write_event(event, f'{group}/events/{event.event_id}')
            for track in event.tracks:
                self.write_track(track, f"{group}/tracks/{event.event_id}_{track['index']}")

        for hist in summary.histograms:
            self.write_histogram(hist, f'{group}/histograms/{hist.name}')

    def write_event(self, event, name: str):
        """Write the full particle records of one finished event."""
        units = self.units
        records = np.array(event.records, copy=True)
        records['position'] = units.to_physical(records['position'], 'length')
        records['momentum'] *= units.ref_energy_mev
        records['energy'] *= units.ref_energy_mev
        records['radiated_energy'] *= units.ref_energy_mev
        records['time'] = units.to_physical(records['time'], 'time')
        self.output.add_array(records, name, attrs={
            'n_steps': event.n_steps,
            'n_particles': event.n_particles,
            'n_alive': event.n_alive,
        })

    def write_track(self, track: dict, group: str):
        units = self.units
        self.output.add_array(units.to_physical(track['position'], 'length'),
                              f'{group}/position')
        self.output.add_array(np.asarray(track['momentum']) * units.ref_energy_mev,
                              f'{group}/momentum')
        self.output.add_array(units.to_physical(track['time'], 'time'), f'{group}/time')
        self.output.add_array(track['gamma'], f'{group}/gamma')
        self.output.set_attribute(group, 'species', track['species'])

    def write_histogram(self, hist, name: str):
        quantity = 'energy_mev' if hist.data_type == 'energy' else 'length'
        self.output.add_array(hist.counts, name, attrs={
            'bin_edges': self.units.to_physical(hist.bin_edges, quantity),
            'entries': hist.entries,
            'particle': hist.particle,
            'data_type': hist.data_type,
            'time': float(self.units.to_physical(hist.time, 'time')),
        })
