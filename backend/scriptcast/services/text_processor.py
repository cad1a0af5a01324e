"""
Serviço para processamento e divisão de texto.
"""

import re
from typing import List, Optional

from ..models.video import TextChunk, VideoSegment, TextStats

SENTENCE_TERMINATORS = frozenset(".!?。！？")

# Prioridade de quebra dentro de uma frase longa
CLAUSE_SEPARATORS = [";", ":", ",", " - ", " — "]

# Fator de pausas naturais entre palavras/frases
PAUSE_FACTOR = 1.1


class TextProcessor:
    """
    Divide texto em chunks para TTS e em segmentos para vídeo/legenda.

    Features:
    - Chunks de áudio com no máximo `audio_chunk_size` caracteres
    - Nunca corta no meio de uma frase se ela couber no limite
    - Frases longas são quebradas por pontuação (; : , - —), depois por espaço
    - Segmentos de vídeo dimensionados pela duração estimada da fala
    """

    def __init__(
        self,
        audio_chunk_size: int = 4500,
        video_segment_duration: float = 5.5,
        words_per_minute: float = 150.0,
        max_subtitle_length: int = 100
    ):
        self.audio_chunk_size = audio_chunk_size
        self.video_segment_duration = video_segment_duration
        self.words_per_minute = words_per_minute
        self.max_subtitle_length = max_subtitle_length

    def split_for_audio(self, text: str, max_chars: Optional[int] = None) -> List[TextChunk]:
        """
        Divide texto em chunks para TTS, empacotando frases inteiras.

        Args:
            text: Texto completo
            max_chars: Limite por chunk (padrão: audio_chunk_size)

        Returns:
            Lista de TextChunk em ordem
        """
        limit = max_chars or self.audio_chunk_size
        text = text.strip()
        if not text:
            return []
        if len(text) <= limit:
            return [TextChunk(index=0, text=text)]

        pieces: List[str] = []
        current = ""

        for sentence in self.split_into_sentences(text):
            potential_len = len(current) + len(sentence) + (1 if current else 0)
            if potential_len <= limit:
                current = f"{current} {sentence}" if current else sentence
                continue

            if current:
                pieces.append(current)

            if len(sentence) > limit:
                pieces.extend(self.smart_split(sentence, limit))
                current = ""
            else:
                current = sentence

        if current:
            pieces.append(current)

        return self._to_chunks(pieces)

    def split_for_subtitles(self, text: str) -> List[TextChunk]:
        """
        Divide texto em linhas de legenda (uma frase por linha).

        Frases maiores que max_subtitle_length são quebradas por vírgula ou
        ponto e vírgula. Cada linha vira também um arquivo de áudio, o que
        deixa o tempo das legendas exato.
        """
        text = text.strip()
        if not text:
            return []

        pieces: List[str] = []
        for sentence in self.split_into_sentences(text):
            if len(sentence) <= self.max_subtitle_length:
                pieces.append(sentence)
            else:
                pieces.extend(self.split_by_clauses(sentence, self.max_subtitle_length))

        return self._to_chunks(pieces)

    def split_for_video(
        self,
        text: str,
        target_seconds: Optional[float] = None
    ) -> List[VideoSegment]:
        """
        Divide texto em segmentos de vídeo pela duração estimada.

        Acumula frases enquanto a duração somada cabe no alvo; quando a
        próxima frase estouraria, fecha o segmento atual.
        """
        target = target_seconds or self.video_segment_duration
        text = text.strip()
        if not text:
            return []

        segments: List[VideoSegment] = []
        current = ""
        current_duration = 0.0

        for sentence in self.split_into_sentences(text):
            duration = self.estimate_duration(sentence)

            if current and current_duration + duration > target:
                segments.append(VideoSegment(
                    index=len(segments),
                    text=current,
                    estimated_duration=current_duration
                ))
                current = sentence
                current_duration = duration
            else:
                current = f"{current} {sentence}" if current else sentence
                current_duration += duration

        if current:
            segments.append(VideoSegment(
                index=len(segments),
                text=current,
                estimated_duration=current_duration
            ))

        return segments

    def split_into_sentences(self, text: str) -> List[str]:
        """
        Divide em frases: terminador seguido de espaço encerra a frase.

        Não há tratamento de abreviações ("Dr. Silva" vira duas frases).
        """
        sentences = []
        current = []

        for i, char in enumerate(text):
            current.append(char)
            if char in SENTENCE_TERMINATORS and i + 1 < len(text) and text[i + 1].isspace():
                sentence = "".join(current).strip()
                if sentence:
                    sentences.append(sentence)
                current = []

        rest = "".join(current).strip()
        if rest:
            sentences.append(rest)

        return sentences

    def split_by_clauses(self, text: str, limit: int) -> List[str]:
        """Quebra uma frase longa por vírgula/ponto e vírgula, empacotando as partes."""
        parts = [p.strip() for p in re.split(r"(?<=[,;])", text) if p.strip()]

        pieces: List[str] = []
        current = ""
        for part in parts:
            if len(current) + len(part) + 1 <= limit:
                current = f"{current} {part}" if current else part
                continue

            if current:
                pieces.append(current)

            if len(part) > limit:
                pieces.extend(self.smart_split(part, limit))
                current = ""
            else:
                current = part

        if current:
            pieces.append(current)

        return pieces

    def smart_split(self, text: str, limit: int) -> List[str]:
        """
        Quebra texto maior que o limite.

        Ordem: última pontuação de cláusula dentro do limite, depois último
        espaço, e por fim corte seco no limite (palavra maior que o limite).
        """
        pieces = []
        remaining = text.strip()

        while len(remaining) > limit:
            split_idx = self._find_clause_cut(remaining, limit)

            if split_idx <= 0:
                space_pos = remaining.rfind(" ", 0, limit + 1)
                split_idx = space_pos if space_pos > 0 else limit

            piece = remaining[:split_idx].strip()
            if piece:
                pieces.append(piece)
            remaining = remaining[split_idx:].strip()

        if remaining:
            pieces.append(remaining)

        return pieces

    def _find_clause_cut(self, text: str, limit: int) -> int:
        """Posição logo após a pontuação mais à direita dentro do limite (-1 se nenhuma)."""
        # Ignorar o primeiro terço para não gerar pedaços minúsculos
        search_start = limit // 3
        best = -1
        for sep in CLAUSE_SEPARATORS:
            idx = text.rfind(sep, search_start, limit)
            if idx == -1:
                continue
            cut = idx + len(sep.rstrip())
            if cut <= limit and cut > best:
                best = cut
        return best

    def estimate_duration(self, text: str) -> float:
        """
        Estima duração falada em segundos.

        (palavras / wpm) * 60 * 1.1, onde 1.1 modela as pausas.
        """
        word_count = self.get_word_count(text)
        if word_count == 0:
            return 0.0
        return (word_count / self.words_per_minute) * 60 * PAUSE_FACTOR

    def get_word_count(self, text: str) -> int:
        """Retorna contagem de palavras."""
        return len(text.split())

    def get_stats(self, text: str) -> TextStats:
        """Estatísticas usadas pela tela de análise de texto."""
        audio_chunks = self.split_for_audio(text)
        segments = self.split_for_video(text)
        total_duration = sum(s.estimated_duration for s in segments)

        return TextStats(
            total_chars=len(text),
            total_words=self.get_word_count(text),
            audio_chunks=len(audio_chunks),
            video_segments=len(segments),
            estimated_duration=total_duration,
            avg_segment_duration=total_duration / len(segments) if segments else 0.0
        )

    @staticmethod
    def _to_chunks(pieces: List[str]) -> List[TextChunk]:
        return [TextChunk(index=i, text=piece) for i, piece in enumerate(pieces)]
