"""
Serviço de composição de mídia usando FFMPEG.

Todas as operações escrevem um arquivo novo e nunca alteram a entrada,
então qualquer etapa pode ser refeita sem corromper o que veio antes.

Operações:
- Merge de áudio com crossfade triangular + loudnorm
- Merge de vídeo com transição fade (xfade), após normalizar as entradas
- Ajuste de duração: trim, extensão congelando o último frame, loop
- Mux final de vídeo + áudio (regra do stream mais curto)
- Concatenação com intro/outro
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from ..models.config import FFmpegConfig
from .errors import EncoderError

logger = logging.getLogger(__name__)


def _to_absolute_path(path: str) -> str:
    """Converte qualquer caminho para absoluto."""
    return str(Path(path).resolve())


def transition_offsets(durations: Sequence[float], transition: float) -> List[float]:
    """
    Offsets do xfade para cada par.

    offset_1 = d_0 - T; offset_i = offset_{i-1} + d_{i-1} - T
    """
    offsets = []
    offset = 0.0
    for duration in durations[:-1]:
        offset = offset + duration - transition
        offsets.append(offset)
    return offsets


def crossfade_duration(durations: Sequence[float], crossfade: float) -> float:
    """Duração esperada do merge: soma - (N-1) * crossfade."""
    if not durations:
        return 0.0
    return sum(durations) - (len(durations) - 1) * crossfade


class MediaComposer:
    """
    Constrói e executa comandos FFMPEG para o pipeline.

    Features:
    - Comandos montados por funções puras (build_*), testáveis sem ffmpeg
    - Erros do encoder viram EncoderError com o stderr capturado
    - Limite de threads e timeout por operação
    """

    def __init__(self, config: FFmpegConfig, ffmpeg_bin: str = "ffmpeg", ffprobe_bin: str = "ffprobe"):
        self.config = config
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin

    # ------------------------------------------------------------------ probe

    def get_duration(self, path: str) -> float:
        """Obtém duração (segundos) de áudio ou vídeo usando ffprobe."""
        cmd = [
            self.ffprobe_bin,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            _to_absolute_path(path)
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=30)
            return float(result.stdout.strip())
        except subprocess.CalledProcessError as e:
            raise EncoderError("probe", e.returncode, e.stderr or "")
        except subprocess.TimeoutExpired:
            raise EncoderError("probe", None, f"ffprobe timeout for {path}")
        except ValueError:
            raise EncoderError("probe", 0, f"could not parse duration for {path}")

    # ------------------------------------------------------------------ audio

    def build_audio_crossfade_cmd(
        self,
        inputs: Sequence[str],
        output: str,
        crossfade: float
    ) -> List[str]:
        """Comando de merge com acrossfade encadeado e loudnorm no final."""
        cfg = self.config
        cmd = [self.ffmpeg_bin, "-y", "-threads", str(cfg.threads)]

        if len(inputs) == 1:
            cmd += ["-i", _to_absolute_path(inputs[0]), "-af", "loudnorm"]
        else:
            for path in inputs:
                cmd += ["-i", _to_absolute_path(path)]

            filter_parts = []
            last_label = "[0:a]"
            for i in range(1, len(inputs)):
                out_label = "[aout]" if i == len(inputs) - 1 else f"[a{i}]"
                filter_parts.append(
                    f"{last_label}[{i}:a]acrossfade=d={crossfade:.2f}:c1=tri:c2=tri{out_label}"
                )
                last_label = out_label
            filter_parts.append("[aout]loudnorm[final]")

            cmd += ["-filter_complex", ";".join(filter_parts), "-map", "[final]"]

        cmd += [
            "-ar", str(cfg.audio_sample_rate),
            "-b:a", cfg.audio_bitrate,
            _to_absolute_path(output)
        ]
        return cmd

    def merge_audio_crossfade(
        self,
        inputs: Sequence[str],
        output: str,
        crossfade: Optional[float] = None
    ) -> str:
        """
        Junta os áudios com crossfade entre faixas consecutivas.

        Uma única entrada só recebe normalização de loudness.
        """
        if not inputs:
            raise ValueError("No audio files to merge")
        crossfade = self.config.audio_crossfade_duration if crossfade is None else crossfade
        self._ensure_new_output(inputs, output)

        logger.info(f"Merging {len(inputs)} audio files (crossfade {crossfade}s)")
        self._run_ffmpeg(self.build_audio_crossfade_cmd(inputs, output, crossfade), "merge_audio")
        return output

    # ------------------------------------------------------------------ video

    def _normalize_filter(self) -> str:
        cfg = self.config
        width, height = cfg.width, cfg.height
        return (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,"
            f"setsar=1,fps={cfg.fps},format=yuv420p"
        )

    def _video_encode_args(self) -> List[str]:
        cfg = self.config
        return [
            "-c:v", "libx264",
            "-preset", cfg.preset,
            "-crf", str(cfg.crf),
            "-r", str(cfg.fps),
            "-pix_fmt", "yuv420p",
        ]

    def build_video_transition_cmd(
        self,
        inputs: Sequence[str],
        durations: Sequence[float],
        output: str,
        transition: float
    ) -> List[str]:
        """
        Normaliza cada entrada (resolução, fps, SAR, pixel format) e encadeia xfade.

        Sem a normalização o xfade falha com "timebase mismatch".
        """
        cmd = [self.ffmpeg_bin, "-y", "-threads", str(self.config.threads)]
        for path in inputs:
            cmd += ["-i", _to_absolute_path(path)]

        norm = self._normalize_filter()
        filter_parts = [f"[{i}:v]{norm}[v{i}norm]" for i in range(len(inputs))]

        if len(inputs) == 1:
            final_label = "[v0norm]"
        else:
            last_label = "[v0norm]"
            for i, offset in enumerate(transition_offsets(durations, transition), start=1):
                out_label = "[vout]" if i == len(inputs) - 1 else f"[v{i}]"
                filter_parts.append(
                    f"{last_label}[v{i}norm]xfade=transition=fade:"
                    f"duration={transition:.2f}:offset={offset:.3f}{out_label}"
                )
                last_label = out_label
            final_label = "[vout]"

        cmd += [
            "-filter_complex", ";".join(filter_parts),
            "-map", final_label,
            *self._video_encode_args(),
            "-an",
            _to_absolute_path(output)
        ]
        return cmd

    def merge_video_transition(
        self,
        inputs: Sequence[str],
        output: str,
        transition: Optional[float] = None
    ) -> str:
        """Junta os clipes com fade entre pares consecutivos."""
        if not inputs:
            raise ValueError("No video files to merge")
        transition = self.config.transition_duration if transition is None else transition
        self._ensure_new_output(inputs, output)

        durations = [self.get_duration(p) for p in inputs] if len(inputs) > 1 else []
        logger.info(f"Merging {len(inputs)} video files (transition {transition}s)")

        cmd = self.build_video_transition_cmd(inputs, durations, output, transition)
        timeout = max(self.config.timeout_seconds, len(inputs) * 60)
        self._run_ffmpeg(cmd, "merge_video", timeout=timeout)
        return output

    # ------------------------------------------------------------------ duration

    def build_trim_cmd(self, input_path: str, output: str, duration: float) -> List[str]:
        return [
            self.ffmpeg_bin, "-y", "-threads", str(self.config.threads),
            "-i", _to_absolute_path(input_path),
            "-t", f"{duration:.3f}",
            *self._video_encode_args(),
            "-an",
            _to_absolute_path(output)
        ]

    def trim(self, input_path: str, output: str, duration: float) -> str:
        """Corta o vídeo em `duration` segundos."""
        self._ensure_new_output([input_path], output)
        self._run_ffmpeg(self.build_trim_cmd(input_path, output, duration), "trim")
        return output

    def build_extend_cmd(self, input_path: str, output: str, pad_seconds: float) -> List[str]:
        return [
            self.ffmpeg_bin, "-y", "-threads", str(self.config.threads),
            "-i", _to_absolute_path(input_path),
            "-vf", f"tpad=stop_mode=clone:stop_duration={pad_seconds:.3f}",
            *self._video_encode_args(),
            "-an",
            _to_absolute_path(output)
        ]

    def extend_freeze_last_frame(self, input_path: str, output: str, target: float) -> str:
        """Estende o vídeo até `target` repetindo o último frame."""
        self._ensure_new_output([input_path], output)
        current = self.get_duration(input_path)

        if current >= target:
            shutil.copy2(input_path, output)
            return output

        logger.info(f"Extending {Path(input_path).name}: {current:.2f}s -> {target:.2f}s")
        self._run_ffmpeg(self.build_extend_cmd(input_path, output, target - current), "extend")
        return output

    def loop_to_length(self, input_path: str, output: str, target: float) -> str:
        """
        Repete o clipe inteiro (concat) o suficiente e corta no alvo exato.

        O conteúdo é repetido, não esticado.
        """
        self._ensure_new_output([input_path], output)
        duration = self.get_duration(input_path)
        if duration <= 0:
            raise EncoderError("loop", 0, f"invalid duration for {input_path}")

        loops = int(target / duration) + 1
        out_path = Path(output)
        list_file = out_path.with_name(f"{out_path.stem}_loop_list.txt")
        looped = out_path.with_name(f"{out_path.stem}_looped{out_path.suffix}")

        abs_input = _to_absolute_path(input_path).replace("'", "'\\''")
        with open(list_file, "w", encoding="utf-8") as f:
            for _ in range(loops):
                f.write(f"file '{abs_input}'\n")

        logger.info(f"Looping {Path(input_path).name} x{loops} to reach {target:.2f}s")
        self._run_ffmpeg([
            self.ffmpeg_bin, "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(list_file.resolve()),
            "-c", "copy",
            str(looped.resolve())
        ], "loop_concat")

        return self.trim(str(looped), output, target)

    def fit_to_duration(self, input_path: str, output: str, target: float) -> str:
        """Estende, corta ou copia para o clipe ter exatamente `target` segundos."""
        current = self.get_duration(input_path)
        if current < target:
            return self.extend_freeze_last_frame(input_path, output, target)
        if current > target:
            return self.trim(input_path, output, target)
        self._ensure_new_output([input_path], output)
        shutil.copy2(input_path, output)
        return output

    # ------------------------------------------------------------------ final

    def build_compose_cmd(self, video_path: str, audio_path: str, output: str) -> List[str]:
        cfg = self.config
        return [
            self.ffmpeg_bin, "-y", "-threads", str(cfg.threads),
            "-i", _to_absolute_path(video_path),
            "-i", _to_absolute_path(audio_path),
            "-c:v", "libx264",
            "-preset", cfg.preset,
            "-b:v", cfg.video_bitrate,
            "-c:a", "aac",
            "-b:a", cfg.audio_bitrate,
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-shortest",
            "-movflags", "+faststart",
            _to_absolute_path(output)
        ]

    def compose_final(self, video_path: str, audio_path: str, output: str) -> str:
        """
        Multiplexa vídeo e narração.

        A saída tem a duração do stream mais curto: o vídeo precisa ser pelo
        menos tão longo quanto o áudio, senão a narração é cortada.
        """
        self._ensure_new_output([video_path, audio_path], output)
        logger.info(f"Composing final video: {Path(video_path).name} + {Path(audio_path).name}")
        self._run_ffmpeg(self.build_compose_cmd(video_path, audio_path, output), "compose_final")
        return output

    def build_concat_cmd(self, inputs: Sequence[str], output: str) -> List[str]:
        cfg = self.config
        cmd = [self.ffmpeg_bin, "-y", "-threads", str(cfg.threads)]
        for path in inputs:
            cmd += ["-i", _to_absolute_path(path)]

        norm = self._normalize_filter()
        filter_parts = []
        for i in range(len(inputs)):
            filter_parts.append(f"[{i}:v]{norm}[v{i}]")
            filter_parts.append(
                f"[{i}:a]aformat=sample_rates={cfg.audio_sample_rate}:channel_layouts=stereo[a{i}]"
            )
        pairs = "".join(f"[v{i}][a{i}]" for i in range(len(inputs)))
        filter_parts.append(f"{pairs}concat=n={len(inputs)}:v=1:a=1[vout][aout]")

        cmd += [
            "-filter_complex", ";".join(filter_parts),
            "-map", "[vout]",
            "-map", "[aout]",
            *self._video_encode_args(),
            "-c:a", "aac",
            "-b:a", cfg.audio_bitrate,
            "-movflags", "+faststart",
            _to_absolute_path(output)
        ]
        return cmd

    def concat_videos(self, inputs: Sequence[str], output: str) -> str:
        """Concatena vídeos com áudio (intro + principal + outro), normalizando todos."""
        if not inputs:
            raise ValueError("No video files to concatenate")
        self._ensure_new_output(inputs, output)
        self._run_ffmpeg(self.build_concat_cmd(inputs, output), "concat")
        return output

    # ------------------------------------------------------------------ runner

    def _ensure_new_output(self, inputs: Sequence[str], output: str) -> None:
        out = Path(output).resolve()
        for path in inputs:
            if Path(path).resolve() == out:
                raise ValueError(f"Output would overwrite input: {output}")
        out.parent.mkdir(parents=True, exist_ok=True)

    def _run_ffmpeg(self, cmd: List[str], operation: str, timeout: Optional[int] = None) -> None:
        """Executa comando FFMPEG; falha vira EncoderError (sem retry)."""
        timeout = timeout or self.config.timeout_seconds
        logger.info(f"Running FFMPEG [{operation}] (timeout: {timeout}s)")
        logger.debug(f"Command: {' '.join(cmd[:20])}...")

        try:
            subprocess.run(
                cmd,
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                timeout=timeout
            )
        except subprocess.TimeoutExpired:
            logger.error(f"FFMPEG [{operation}] timeout after {timeout}s")
            raise EncoderError(operation, None, f"timeout after {timeout}s")
        except subprocess.CalledProcessError as e:
            stderr = e.stderr or ""
            error_lines = [line for line in stderr.splitlines() if "error" in line.lower()]
            logger.error(f"FFMPEG [{operation}] errors: {error_lines[-5:] or stderr[-1000:]}")
            raise EncoderError(operation, e.returncode, stderr)
